import pytest

from app.models.revision import Revision
from app.services.content_service import create_page, update_page
from app.services.errors import ImmutableRevisionError, NotFoundError
from app.services.ledger_service import RevisionLedger
from app.services.revision_service import RevisionService


@pytest.fixture
def page_with_history(db):
    page = create_page(db, title="A", slug="page-1", actor_id=7)
    update_page(db, page, title="B", actor_id=7)
    RevisionService(db).publish(page, actor_id=7)
    update_page(db, page, title="C", actor_id=7)
    db.commit()
    return page


def test_history_is_newest_first(db, page_with_history):
    ledger = RevisionLedger(db)
    history = ledger.history("page", page_with_history.id)
    assert [r.version for r in history] == [4, 3, 2, 1]
    assert [r.action for r in history] == ["update", "publish", "update", "create"]
    assert [r.label for r in history] == ["v4", "v3", "v2", "v1"]


def test_history_filters_and_limits(db, page_with_history):
    ledger = RevisionLedger(db)
    updates = ledger.history("page", page_with_history.id, action="update")
    assert [r.version for r in updates] == [4, 2]
    assert [r.version for r in ledger.history("page", page_with_history.id, limit=2)] == [4, 3]
    assert ledger.history("page", page_with_history.id, limit=0) == []
    assert len(ledger.history("page", page_with_history.id, limit=None)) == 4


def test_latest_and_latest_published(db, page_with_history):
    ledger = RevisionLedger(db)
    assert ledger.latest("page", page_with_history.id).version == 4
    published = ledger.latest_published("page", page_with_history.id)
    assert published.version == 3
    assert published.action == "publish"
    assert published.published_at is not None


def test_counts_and_entities(db, page_with_history):
    ledger = RevisionLedger(db)
    pid = page_with_history.id
    assert ledger.count("page", pid) == 4
    # v1 (create) y v3 (publish)
    assert ledger.count("page", pid, published_only=True) == 2
    assert ledger.exists("page", pid)
    assert not ledger.exists("page", pid + 1000)
    assert ("page", pid) in ledger.entities()
    assert ledger.entities("content_block") == []


def test_empty_history_reads(db):
    ledger = RevisionLedger(db)
    assert ledger.history("page", 999) == []
    assert ledger.latest("page", 999) is None
    assert ledger.latest_published("page", 999) is None


def test_get_and_get_version(db, page_with_history):
    ledger = RevisionLedger(db)
    v2 = ledger.get_version("page", page_with_history.id, 2)
    assert ledger.get(v2.id) is v2
    with pytest.raises(NotFoundError):
        ledger.get(10_000_000)
    with pytest.raises(NotFoundError):
        ledger.get_version("page", page_with_history.id, 99)


def test_revisions_cannot_be_updated(db, page_with_history):
    rev = RevisionLedger(db).latest("page", page_with_history.id)
    rev.description = "tampered"
    with pytest.raises(ImmutableRevisionError):
        db.flush()
    db.rollback()
    db.expire_all()
    assert RevisionLedger(db).latest("page", page_with_history.id).description != "tampered"


def test_revisions_cannot_be_deleted(db, page_with_history):
    rev = RevisionLedger(db).latest("page", page_with_history.id)
    db.delete(rev)
    with pytest.raises(ImmutableRevisionError):
        db.flush()
    db.rollback()
    assert RevisionLedger(db).count("page", page_with_history.id) == 4


def test_ledger_exposes_no_mutators():
    assert not hasattr(RevisionLedger, "update")
    assert not hasattr(RevisionLedger, "delete")
    uniques = {c.name for c in Revision.__table__.constraints if c.name}
    assert "uq_revisions_entity_version" in uniques
