"""
Workflow API tests — /api/v1/workflow/...

Covers create / list / stats / get / edit / delete and every transition
route, including the error envelope for 404 / 409 / 422 / 403.
"""

import pytest

BASE = "/api/v1/workflow"

ADMIN = {"X-User-Id": "admin-1", "X-User-Name": "Administrator", "X-User-Role": "admin"}
ACCOUNTANT = {"X-User-Id": "acct-1", "X-User-Name": "Amaka Accountant", "X-User-Role": "accountant"}
EXAM_OFFICER = {"X-User-Id": "exam-1", "X-User-Name": "Exam Officer", "X-User-Role": "exam_officer"}

EXPENDITURE = {
    "academic_session": "2024/2025",
    "term": "First Term",
    "title": "Laboratory equipment",
    "amount": 450000,
    "category": "equipment",
    "priority": "high",
}


def _create(client, **overrides):
    res = client.post(f"{BASE}/expenditure_request", json=dict(EXPENDITURE, **overrides),
                      headers=ACCOUNTANT)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _act(client, record_id, action, headers=ADMIN, **body):
    return client.post(f"{BASE}/records/{record_id}/{action}", json=body, headers=headers)


class TestCreateAndRead:

    def test_create_uses_caller_as_owner(self, client):
        data = _create(client)
        assert data["status"] == "draft"
        assert data["owner_id"] == "acct-1"
        assert data["owner_name"] == "Amaka Accountant"
        assert data["amount"] == 450000
        assert data["available_actions"] == ["submit", "edit", "delete"]

    def test_unknown_kind_404(self, client):
        res = client.post(f"{BASE}/purchase_order", json=EXPENDITURE, headers=ACCOUNTANT)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_validation_error_envelope(self, client):
        res = client.post(f"{BASE}/expenditure_request", json=dict(EXPENDITURE, amount=-10),
                          headers=ACCOUNTANT)
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_RULE"
        assert body["details"]["amount"] == "must not be negative"

    def test_non_json_body(self, client):
        res = client.post(f"{BASE}/expenditure_request", data="amount=5",
                          content_type="text/plain", headers=ACCOUNTANT)
        assert res.status_code == 415

    def test_role_not_allowed_403(self, client):
        res = client.post(f"{BASE}/financial_report",
                          json={"academic_session": "2024/2025", "term": "First Term",
                                "title": "Report", "content": "text"},
                          headers=EXAM_OFFICER)
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_get_record(self, client):
        created = _create(client)
        res = client.get(f"{BASE}/records/{created['id']}")
        assert res.status_code == 200
        assert res.get_json()["title"] == "Laboratory equipment"

    def test_get_missing_404(self, client):
        assert client.get(f"{BASE}/records/nope").status_code == 404

    def test_list_filters(self, client):
        _create(client)
        _create(client, term="Second Term")
        other = client.post(f"{BASE}/exam_officer_report",
                            json={"academic_session": "2024/2025", "term": "First Term",
                                  "title": "Exams", "content": "ok"},
                            headers=EXAM_OFFICER)
        assert other.status_code == 201

        res = client.get(f"{BASE}/expenditure_request")
        assert res.get_json()["total"] == 2

        res = client.get(f"{BASE}/expenditure_request",
                         query_string={"session": "2024/2025", "term": "Second Term"})
        assert res.get_json()["total"] == 1

        res = client.get(f"{BASE}/expenditure_request?owner_id=someone-else")
        assert res.get_json()["total"] == 0

        res = client.get(f"{BASE}/expenditure_request?status=approved")
        assert res.get_json()["total"] == 0

    def test_list_needs_session_and_term_together(self, client):
        res = client.get(f"{BASE}/expenditure_request?session=2024/2025")
        assert res.status_code == 400

    def test_list_bad_status(self, client):
        assert client.get(f"{BASE}/expenditure_request?status=lost").status_code == 400

    def test_stats(self, client):
        _create(client, amount=100)
        created = _create(client, amount=200)
        _act(client, created["id"], "submit", headers=ACCOUNTANT)
        stats = client.get(f"{BASE}/expenditure_request/stats").get_json()
        assert stats["total"] == 2
        assert stats["draft"] == 1
        assert stats["submitted"] == 1
        assert stats["total_amount"] == 300


class TestTransitions:

    def test_full_expenditure_lifecycle(self, client):
        rec = _create(client)

        res = _act(client, rec["id"], "submit", headers=ACCOUNTANT)
        assert res.status_code == 200
        assert res.get_json()["status"] == "submitted"

        res = _act(client, rec["id"], "approve", comment="Approved")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "approved"
        assert body["reviewer_id"] == "admin-1"
        assert body["reviewer_name"] == "Administrator"
        assert body["review_comment"] == "Approved"

        res = _act(client, rec["id"], "complete")
        assert res.status_code == 200
        assert res.get_json()["status"] == "completed"

    def test_illegal_transition_409(self, client):
        rec = _create(client)
        res = _act(client, rec["id"], "approve")
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_CONFLICT_STATE"
        assert body["details"] == {"action": "approve", "current_status": "draft"}

    def test_reject_without_comment_422(self, client):
        rec = _create(client)
        _act(client, rec["id"], "submit", headers=ACCOUNTANT)
        res = _act(client, rec["id"], "reject")
        assert res.status_code == 422
        assert client.get(f"{BASE}/records/{rec['id']}").get_json()["status"] == "submitted"

    def test_accountant_cannot_approve(self, client):
        rec = _create(client)
        _act(client, rec["id"], "submit", headers=ACCOUNTANT)
        assert _act(client, rec["id"], "approve", headers=ACCOUNTANT).status_code == 403

    def test_other_user_cannot_submit(self, client):
        rec = _create(client)
        other = dict(ACCOUNTANT, **{"X-User-Id": "acct-2"})
        assert _act(client, rec["id"], "submit", headers=other).status_code == 403

    def test_unknown_action_400(self, client):
        rec = _create(client)
        assert _act(client, rec["id"], "archive").status_code == 400

    def test_transition_missing_record_404(self, client):
        assert _act(client, "nope", "submit").status_code == 404

    def test_reject_edit_resubmit(self, client):
        rec = _create(client)
        _act(client, rec["id"], "submit", headers=ACCOUNTANT)
        res = _act(client, rec["id"], "reject", comment="Need quotes")
        assert res.get_json()["status"] == "rejected"

        res = client.patch(f"{BASE}/records/{rec['id']}", json={"amount": 300000},
                           headers=ACCOUNTANT)
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "draft"
        assert body["review_comment"] is None
        assert body["amount"] == 300000

        assert _act(client, rec["id"], "submit", headers=ACCOUNTANT).status_code == 200


class TestEditDelete:

    def test_edit_submitted_422(self, client):
        rec = _create(client)
        _act(client, rec["id"], "submit", headers=ACCOUNTANT)
        res = client.patch(f"{BASE}/records/{rec['id']}", json={"amount": 1}, headers=ACCOUNTANT)
        assert res.status_code == 422
        assert client.get(f"{BASE}/records/{rec['id']}").get_json()["amount"] == 450000

    def test_edit_missing_404(self, client):
        res = client.patch(f"{BASE}/records/nope", json={"amount": 1}, headers=ACCOUNTANT)
        assert res.status_code == 404

    def test_delete_draft(self, client):
        rec = _create(client)
        assert client.delete(f"{BASE}/records/{rec['id']}", headers=ACCOUNTANT).status_code == 204
        assert client.get(f"{BASE}/records/{rec['id']}").status_code == 404
        assert client.delete(f"{BASE}/records/{rec['id']}", headers=ACCOUNTANT).status_code == 404

    @pytest.mark.parametrize("action", ["submit"])
    def test_delete_submitted_422(self, client, action):
        rec = _create(client)
        _act(client, rec["id"], action, headers=ACCOUNTANT)
        assert client.delete(f"{BASE}/records/{rec['id']}", headers=ACCOUNTANT).status_code == 422


class TestCallerIdentity:

    def _status(self, client, record_id):
        return client.get(f"{BASE}/records/{record_id}").get_json()["status"]

    def test_anonymous_approve_401(self, client):
        rec = _create(client)
        _act(client, rec["id"], "submit", headers=ACCOUNTANT)
        res = _act(client, rec["id"], "approve", headers={}, reviewer_id="anyone")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"
        assert self._status(client, rec["id"]) == "submitted"

    def test_anonymous_complete_401(self, client):
        rec = _create(client)
        _act(client, rec["id"], "submit", headers=ACCOUNTANT)
        _act(client, rec["id"], "approve")
        assert _act(client, rec["id"], "complete", headers={}).status_code == 401
        assert self._status(client, rec["id"]) == "approved"

    def test_anonymous_edit_401(self, client):
        rec = _create(client)
        res = client.patch(f"{BASE}/records/{rec['id']}", json={"amount": 1})
        assert res.status_code == 401
        assert client.get(f"{BASE}/records/{rec['id']}").get_json()["amount"] == 450000

    def test_anonymous_create_and_delete_401(self, client):
        assert client.post(f"{BASE}/expenditure_request", json=EXPENDITURE).status_code == 401
        rec = _create(client)
        assert client.delete(f"{BASE}/records/{rec['id']}").status_code == 401
        assert client.get(f"{BASE}/records/{rec['id']}").status_code == 200

    @pytest.mark.parametrize("headers", [
        {"X-User-Role": "admin"},
        {"X-User-Id": "admin-1", "X-User-Name": "Administrator"},
    ])
    def test_partial_identity_401(self, client, headers):
        rec = _create(client)
        _act(client, rec["id"], "submit", headers=ACCOUNTANT)
        assert _act(client, rec["id"], "approve", headers=headers).status_code == 401

    def test_anonymous_reads_allowed(self, client):
        rec = _create(client)
        assert client.get(f"{BASE}/records/{rec['id']}").status_code == 200
        assert client.get(f"{BASE}/expenditure_request").status_code == 200

    def test_reviewer_is_the_caller_not_the_body(self, client):
        rec = _create(client)
        _act(client, rec["id"], "submit", headers=ACCOUNTANT)
        res = _act(client, rec["id"], "approve", reviewer_id="principal-9",
                   reviewer_name="Principal", comment="ok")
        assert res.status_code == 200
        body = res.get_json()
        assert body["reviewer_id"] == "admin-1"
        assert body["reviewer_name"] == "Administrator"

    def test_rejecting_reviewer_is_the_caller(self, client):
        rec = _create(client)
        _act(client, rec["id"], "submit", headers=ACCOUNTANT)
        res = _act(client, rec["id"], "reject", reviewer_id="principal-9", comment="No quotes")
        assert res.get_json()["reviewer_id"] == "admin-1"

    def test_owner_is_the_caller_not_the_body(self, client):
        data = _create(client, owner_id="someone-else", owner_name="Someone")
        assert data["owner_id"] == "acct-1"
        assert data["owner_name"] == "Amaka Accountant"


def test_financial_report_snapshot_via_api(client):
    pay = client.post("/api/v1/payments", json={
        "student_id": "stu-1", "receipt_number": "R-1", "amount": 1000000,
        "payment_method": "Cash", "academic_session": "2024/2025", "term": "First Term",
    }, headers=ACCOUNTANT)
    assert pay.status_code == 201

    res = client.post(f"{BASE}/financial_report", json={
        "academic_session": "2024/2025", "term": "First Term",
        "title": "First Term Report", "content": "Summary",
    }, headers=ACCOUNTANT)
    assert res.status_code == 201
    body = res.get_json()
    assert body["total_revenue"] == 1000000
    assert body["net_balance"] == 1000000
    assert body["payment_count"] == 1
