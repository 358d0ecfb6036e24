from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.settings import settings

ENGINE_URL = settings.SQLALCHEMY_DATABASE_URL


def enable_sqlite_savepoints(engine: Engine) -> None:
    """
    pysqlite emits its own BEGIN lazily, which breaks SAVEPOINT semantics.
    Take over transaction control so begin_nested() behaves as on Postgres.
    Foreign keys are off by default in SQLite; turn them on per connection.
    """
    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite:"):
            kwargs["poolclass"] = StaticPool
        eng = create_engine(url, **kwargs)
        enable_sqlite_savepoints(eng)
        return eng
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


engine = build_engine(ENGINE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
