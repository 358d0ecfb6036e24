# tests/conftest.py
from __future__ import annotations

import os

# BD en memoria para toda la suite (antes de importar app.*)
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

from app.db.base import Base
from app.db.session import engine, get_db
from app.models import content, revision  # noqa: F401  (populate metadata)

Base.metadata.create_all(engine)

# Cada commit del código bajo prueba libera un SAVEPOINT; la transacción externa se revierte al final
TestingSessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    join_transaction_mode="create_savepoint",
)


@pytest.fixture(scope="function")
def db() -> Session:
    """
    Crea UNA sesión por prueba, aislada dentro de una transacción explícita.
    Al finalizar cada prueba, se hace rollback para dejar la BD limpia.
    """
    connection = engine.connect()
    trans = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        trans.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def _override_get_db(db: Session):
    """
    Override automático de get_db para que los endpoints usen
    **la misma sesión** de la prueba en curso.
    """
    from app.main import app  # import tardío para evitar ciclos

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def client() -> TestClient:
    from app.main import app
    return TestClient(app)
