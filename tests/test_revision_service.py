import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core.settings import settings
from app.models.content import ContentBlock, Page
from app.models.revision import Revision, RevisionAction
from app.services.content_service import (
    create_block, create_page, delete_page, update_block, update_page,
)
from app.services.errors import MismatchError, NotFoundError, SnapshotError, TransactionError
from app.services.ledger_service import RevisionLedger
from app.services.persistence import CaptureContext, save_entity, unit_of_work
from app.services.revision_service import RevisionService, describe


def _versions(db, entity_type, entity_id):
    return [r.version for r in RevisionService(db).history(entity_type, entity_id)]


def test_page_lifecycle_create_update_publish_revert(db):
    page = create_page(db, title="A", slug="page-1", actor_id=1)
    svc = RevisionService(db)

    v1 = svc.latest("page", page.id)
    assert (v1.version, v1.action, v1.is_published) == (1, "create", True)
    assert v1.changes == {}
    assert v1.data["title"] == "A"
    assert v1.actor_id == 1
    assert v1.description == "Page was created"

    update_page(db, page, title="B", actor_id=1)
    v2 = svc.latest("page", page.id)
    assert (v2.version, v2.action, v2.is_published) == (2, "update", False)
    assert v2.changes == {"title": {"from": "A", "to": "B"}}
    assert v2.published_at is None

    v3 = svc.create_manual_revision(page, "publish", is_published=True, actor_id=1)
    assert (v3.version, v3.action, v3.is_published) == (3, "publish", True)
    assert v3.data["title"] == "B"
    assert v3.changes == {}

    v4 = svc.revert(page, v1, actor_id=1)
    assert (v4.version, v4.action, v4.is_published) == (4, "revert", False)
    assert v4.data["title"] == "A"
    assert v4.changes == {"title": {"from": "B", "to": "A"}}
    assert v4.description == "Reverted to revision 1"
    assert v4.meta["reverted_to_version"] == 1
    assert v4.meta["reverted_to_revision_id"] == v1.id
    assert page.title == "A"

    assert _versions(db, "page", page.id) == [4, 3, 2, 1]
    # revisiones previas intactas
    assert svc.ledger.get_version("page", page.id, 2).data["title"] == "B"


def test_revert_writes_exactly_one_revision(db):
    page = create_page(db, title="A", slug="a")
    update_page(db, page, title="B", content={"body": "new"})
    svc = RevisionService(db)
    v1 = svc.ledger.get_version("page", page.id, 1)

    svc.revert(page, v1.id)

    history = svc.history("page", page.id)
    assert [r.action for r in history] == ["revert", "update", "create"]
    assert svc.history("page", page.id, action=RevisionAction.UPDATE.value)[0].version == 2
    assert history[0].data == v1.data


def test_revert_round_trip_restores_live_state(db):
    page = create_page(db, title="A", slug="a", content={"blocks": [1, 2]}, meta={"seo": "x"})
    v1_data = RevisionService(db).latest("page", page.id).data
    update_page(db, page, title="Z", slug="z", content={"blocks": [2]}, meta={}, status="published")
    db.commit()

    RevisionService(db).revert(page, RevisionService(db).ledger.get_version("page", page.id, 1))
    db.commit()
    db.expire_all()

    fresh = db.get(Page, page.id)
    assert (fresh.title, fresh.slug, fresh.status) == ("A", "a", "draft")
    assert fresh.content == {"blocks": [1, 2]}
    assert fresh.meta == {"seo": "x"}
    assert RevisionService(db).latest("page", page.id).data == v1_data


def test_revert_to_revision_of_other_entity_is_rejected(db):
    p1 = create_page(db, title="One", slug="one")
    p2 = create_page(db, title="Two", slug="two")
    foreign = RevisionService(db).latest("page", p2.id)

    with pytest.raises(MismatchError):
        RevisionService(db).revert(p1, foreign)
    assert p1.title == "One"
    assert _versions(db, "page", p1.id) == [1]


def test_revert_to_missing_revision(db):
    page = create_page(db, title="One", slug="one")
    with pytest.raises(NotFoundError):
        RevisionService(db).revert(page, 999_999)
    assert _versions(db, "page", page.id) == [1]


def test_failed_revert_leaves_entity_and_ledger_untouched(db):
    page = create_page(db, title="A", slug="a")
    update_page(db, page, title="B")
    # revisión con data que el modelo rechaza (slug inválido)
    bad = RevisionLedger(db).append(
        Revision(
            entity_type="page", entity_id=page.id, action="import", version=3,
            data={"title": "X", "slug": "Not Valid!"}, changes={}, meta={},
        )
    )

    with pytest.raises(ValueError):
        RevisionService(db).revert(page, bad)

    assert page.title == "B"
    assert page.slug == "a"
    assert _versions(db, "page", page.id) == [3, 2, 1]


def test_revert_content_block_changing_type_and_data(db):
    page = create_page(db, title="Home", slug="home")
    block = create_block(db, page=page, type="text", data={"content": "Hi"})
    update_block(db, block, type="hero", data={"title": "Welcome"})
    svc = RevisionService(db)

    v2 = svc.latest("content_block", block.id)
    assert v2.changes == {
        "data.content": {"from": "Hi", "to": None, "kind": "removed"},
        "data.title": {"from": None, "to": "Welcome", "kind": "added"},
        "type": {"from": "text", "to": "hero"},
    }

    v3 = svc.revert(block, svc.ledger.get_version("content_block", block.id, 1))
    assert (block.type, block.data) == ("text", {"content": "Hi"})
    assert v3.version == 3
    assert _versions(db, "content_block", block.id) == [3, 2, 1]


def test_save_with_skip_context_does_not_capture(db):
    page = create_page(db, title="A", slug="a")
    page.title = "Silent"
    assert save_entity(db, page, CaptureContext(skip=True)) is None
    assert _versions(db, "page", page.id) == [1]


def test_update_without_tracked_changes_is_not_recorded(db):
    page = create_page(db, title="A", slug="a")
    update_page(db, page, title="A")
    block = create_block(db, page=page, type="text", data={"content": "x"})
    # updated_at no se rastrea
    update_block(db, block, data={"content": "x"})
    assert _versions(db, "page", page.id) == [1]
    assert _versions(db, "content_block", block.id) == [1]


def test_delete_records_last_state_and_history_survives(db):
    page = create_page(db, title="Gone", slug="gone")
    pid = page.id
    update_page(db, page, title="Gone soon")
    delete_page(db, page, actor_id=5)
    db.commit()

    assert db.get(Page, pid) is None
    last = RevisionService(db).latest("page", pid)
    assert (last.version, last.action, last.is_published) == (3, "delete", False)
    assert last.data["title"] == "Gone soon"
    assert last.changes == {}
    assert last.actor_id == 5


def test_capture_context_metadata_and_description(db):
    page = Page(title="A", slug="a", content={}, meta={})
    ctx = CaptureContext(actor_id=3, metadata={"ip_address": "10.0.0.1"}, description="Imported")
    rev = save_entity(db, page, ctx)
    assert rev.meta == {"ip_address": "10.0.0.1"}
    assert rev.description == "Imported"
    assert rev.actor_id == 3


def test_manual_revision_with_custom_action(db):
    page = create_page(db, title="A", slug="a")
    rev = RevisionService(db).create_manual_revision(
        page, "Archive", description="Archived by editor", metadata={"reason": "old"}
    )
    assert rev.action == "archive"
    assert rev.is_published is False
    assert rev.meta == {"reason": "old"}
    with pytest.raises(ValueError):
        RevisionService(db).create_manual_revision(page, "")


def test_unpublished_changes_and_counts(db):
    page = create_page(db, title="A", slug="a")
    svc = RevisionService(db)
    assert svc.has_revisions("page", page.id)
    assert not svc.has_unpublished_changes("page", page.id)

    update_page(db, page, title="B")
    assert svc.has_unpublished_changes("page", page.id)

    svc.publish(page)
    assert not svc.has_unpublished_changes("page", page.id)
    assert svc.revision_count("page", page.id) == 3
    assert svc.published_revision_count("page", page.id) == 2
    assert svc.latest_published("page", page.id).version == 3


def test_compare_and_verify(db):
    page = create_page(db, title="A", slug="a", content={"x": 1})
    update_page(db, page, title="B")
    update_page(db, page, content={"x": 2})
    svc = RevisionService(db)
    v1 = svc.ledger.get_version("page", page.id, 1)
    v3 = svc.ledger.get_version("page", page.id, 3)

    assert svc.compare_revisions(v1, v3) == {
        "content.x": {"from": 1, "to": 2},
        "title": {"from": "A", "to": "B"},
    }
    assert svc.verify_changes("page", page.id) == []

    svc.ledger.append(
        Revision(
            entity_type="page", entity_id=page.id, action="import", version=4,
            data={"title": "C"}, changes={}, meta={},
        )
    )
    assert svc.verify_changes("page", page.id) == [4]


def test_snapshot_error_aborts_the_mutation(db, monkeypatch):
    db.commit()
    monkeypatch.setattr(settings, "MAX_SNAPSHOT_KB", 1)
    with pytest.raises(SnapshotError):
        with unit_of_work(db):
            create_page(db, title="Big", slug="big", content={"body": "x" * 4096})
    assert db.scalar(select(Page).where(Page.slug == "big")) is None


def test_ledger_failure_rolls_back_entity_write(db, monkeypatch):
    page = create_page(db, title="A", slug="a")
    db.commit()

    def boom(self, revision):
        raise OperationalError("INSERT INTO revisions", {}, Exception("disk I/O error"))

    monkeypatch.setattr(RevisionLedger, "append", boom)

    with pytest.raises(TransactionError):
        with unit_of_work(db):
            update_page(db, page, title="Changed")
    with pytest.raises(TransactionError):
        with unit_of_work(db):
            create_page(db, title="New", slug="new")

    db.expire_all()
    assert db.get(Page, page.id).title == "A"
    assert db.scalar(select(Page).where(Page.slug == "new")) is None
    assert _versions(db, "page", page.id) == [1]


def test_block_validation_failure_writes_nothing(db):
    page = create_page(db, title="Home", slug="home")
    db.commit()
    with pytest.raises(ValueError):
        with unit_of_work(db):
            create_block(db, page=page, type="hero", data={"subtitle": "no title"})
    assert db.scalars(select(ContentBlock)).all() == []
    assert RevisionLedger(db).entities("content_block") == []


def test_describe():
    assert describe("page", "update") == "Page was updated"
    assert describe("content_block", "create") == "Content block was created"
    assert describe("page", "archive") == "Page was modified"
