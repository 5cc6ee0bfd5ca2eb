"""
Record store contract tests — both backends must behave identically.
"""

import pytest

from app.core.exceptions import DuplicateKeyError
from app.models.workflow import ExamOfficerReport, ExpenditureRequest


def _expenditure(**overrides):
    payload = {
        "kind": "expenditure_request",
        "status": "draft",
        "owner_id": "acct-1",
        "owner_name": "Accountant",
        "academic_session": "2024/2025",
        "term": "First Term",
        "title": "Chalk",
        "amount": 500,
        "category": "supplies",
    }
    payload.update(overrides)
    return payload


def _notification(**overrides):
    payload = {
        "student_id": "stu-1",
        "category": "result",
        "academic_session": "2024/2025",
        "term": "First Term",
        "message": "ready",
    }
    payload.update(overrides)
    return payload


class TestCreateAndGet:

    def test_create_assigns_id_timestamps_and_defaults(self, store):
        rec = store.create("workflow_records", _expenditure(status=None, priority=None))
        assert isinstance(rec, ExpenditureRequest)
        assert rec.id and len(rec.id) == 32
        assert rec.created_at is not None
        assert rec.updated_at is not None
        assert rec.status == "draft"
        assert rec.priority == "medium"

    def test_kind_selects_subclass(self, store):
        rec = store.create("workflow_records", {
            "kind": "exam_officer_report", "owner_id": "exam-1",
            "academic_session": "2024/2025", "term": "First Term",
            "title": "Summary", "content": "text",
        })
        assert isinstance(store.get_by_id("workflow_records", rec.id), ExamOfficerReport)

    def test_notification_read_defaults_false(self, store):
        assert store.create("notifications", _notification()).read is False

    def test_get_missing_returns_none(self, store):
        assert store.get_by_id("payments", "missing") is None
        assert store.get_by_id("payments", None) is None

    def test_ids_are_unique(self, store):
        ids = {store.create("workflow_records", _expenditure()).id for _ in range(5)}
        assert len(ids) == 5

    def test_unknown_collection(self, store):
        with pytest.raises(ValueError):
            store.list_all("invoices")

    def test_unknown_kind(self, store):
        with pytest.raises(ValueError):
            store.create("workflow_records", _expenditure(kind="memo"))


class TestListing:

    def test_list_by_owner_uses_collection_owner_field(self, store):
        store.create("workflow_records", _expenditure())
        store.create("workflow_records", _expenditure(owner_id="acct-2"))
        store.create("notifications", _notification())
        assert len(store.list_by_owner("workflow_records", "acct-1")) == 1
        assert len(store.list_by_owner("notifications", "stu-1")) == 1
        assert store.list_by_owner("notifications", "acct-1") == []

    def test_list_by_owner_period_filter(self, store):
        store.create("notifications", _notification())
        store.create("notifications", _notification(term="Second Term"))
        assert len(store.list_by_owner("notifications", "stu-1")) == 2
        assert len(store.list_by_owner("notifications", "stu-1", "2024/2025", "Second Term")) == 1
        assert store.list_by_owner("notifications", "stu-1", "2023/2024") == []

    def test_list_by_period(self, store):
        store.create("workflow_records", _expenditure())
        store.create("workflow_records", _expenditure(academic_session="2023/2024"))
        assert len(store.list_by_period("workflow_records", "2024/2025", "First Term")) == 1

    def test_newest_first(self, store):
        first = store.create("workflow_records", _expenditure(title="first"))
        second = store.create("workflow_records", _expenditure(title="second"))
        assert [r.id for r in store.list_all("workflow_records")] == [second.id, first.id]

    def test_find_one(self, store):
        rec = store.create("workflow_records", _expenditure(title="Desks"))
        store.create("workflow_records", _expenditure(title="Chairs"))
        assert store.find_one("workflow_records", "title", "Desks").id == rec.id
        assert store.find_one("workflow_records", "title", "Boards") is None

    def test_list_periods(self, store):
        store.create("notifications", _notification())
        store.create("notifications", _notification(category="payment"))
        store.create("notifications", _notification(academic_session="2023/2024", term="Third Term"))
        assert store.list_periods("notifications") == {
            ("2024/2025", "First Term"),
            ("2023/2024", "Third Term"),
        }
        assert store.list_periods("payments") == set()


class TestMutation:

    def test_update_refreshes_updated_at(self, store):
        rec = store.create("workflow_records", _expenditure())
        created = rec.updated_at
        updated = store.update("workflow_records", rec.id, {"title": "Markers"})
        assert updated.title == "Markers"
        assert updated.updated_at >= created

    def test_update_missing_returns_none(self, store):
        assert store.update("workflow_records", "missing", {"title": "x"}) is None

    def test_compare_and_set_matching_status(self, store):
        rec = store.create("workflow_records", _expenditure())
        result = store.compare_and_set("workflow_records", rec.id, "draft", {"status": "submitted"})
        assert result is not None
        assert store.get_by_id("workflow_records", rec.id).status == "submitted"

    def test_compare_and_set_stale_status(self, store):
        rec = store.create("workflow_records", _expenditure())
        store.compare_and_set("workflow_records", rec.id, "draft", {"status": "submitted"})
        assert store.compare_and_set(
            "workflow_records", rec.id, "draft", {"status": "submitted", "title": "changed"},
        ) is None
        stored = store.get_by_id("workflow_records", rec.id)
        assert stored.status == "submitted"
        assert stored.title == "Chalk"

    def test_compare_and_set_missing(self, store):
        assert store.compare_and_set("workflow_records", "missing", "draft", {"status": "x"}) is None

    def test_delete(self, store):
        rec = store.create("workflow_records", _expenditure())
        assert store.delete("workflow_records", rec.id) is True
        assert store.get_by_id("workflow_records", rec.id) is None
        assert store.delete("workflow_records", rec.id) is False


class TestUniqueKeys:

    def test_duplicate_notification_rejected(self, store):
        store.create("notifications", _notification())
        with pytest.raises(DuplicateKeyError):
            store.create("notifications", _notification())
        assert len(store.list_all("notifications")) == 1

    def test_same_period_other_category_allowed(self, store):
        store.create("notifications", _notification())
        store.create("notifications", _notification(category="both"))
        assert len(store.list_all("notifications")) == 2

    def test_duplicate_receipt_rejected(self, store):
        payment = {
            "student_id": "stu-1", "receipt_number": "R-1", "amount": 10,
            "payment_method": "Cash", "academic_session": "2024/2025", "term": "First Term",
        }
        store.create("payments", payment)
        with pytest.raises(DuplicateKeyError):
            store.create("payments", dict(payment, student_id="stu-2"))
