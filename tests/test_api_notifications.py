"""
Student notification API tests.
"""

ACCOUNTANT = {"X-User-Id": "acct-1", "X-User-Name": "Amaka Accountant", "X-User-Role": "accountant"}


def _seed_ledgers(client):
    res = client.post("/api/v1/grades", json={
        "student_id": "stu-1", "subject_id": "math",
        "academic_session": "2024/2025", "term": "First Term",
        "first_ca": 10, "second_ca": 10, "exam": 40,
    })
    assert res.status_code == 201
    res = client.post("/api/v1/payments", json={
        "student_id": "stu-1", "receipt_number": "R-1", "amount": 50000,
        "payment_method": "Cash", "academic_session": "2024/2025", "term": "First Term",
    }, headers=ACCOUNTANT)
    assert res.status_code == 201


def test_refresh_creates_single_both_notice(client):
    _seed_ledgers(client)
    res = client.post("/api/v1/students/stu-1/notifications/refresh")
    assert res.status_code == 200
    body = res.get_json()
    assert body["total"] == 1
    assert body["unread_count"] == 1
    notice = body["items"][0]
    assert notice["category"] == "both"
    assert notice["read"] is False

    again = client.post("/api/v1/students/stu-1/notifications/refresh").get_json()
    assert [n["id"] for n in again["items"]] == [notice["id"]]


def test_refresh_without_ledger_rows(client):
    body = client.post("/api/v1/students/nobody/notifications/refresh").get_json()
    assert body == {"items": [], "total": 0, "unread_count": 0}


def test_mark_read_and_unread_filter(client):
    _seed_ledgers(client)
    notice = client.post("/api/v1/students/stu-1/notifications/refresh").get_json()["items"][0]

    res = client.post(f"/api/v1/notifications/{notice['id']}/read")
    assert res.status_code == 200
    assert res.get_json()["read"] is True
    assert res.get_json()["read_at"] is not None

    body = client.get("/api/v1/students/stu-1/notifications?unread_only=true").get_json()
    assert body["total"] == 0
    assert body["unread_count"] == 0
    assert client.get("/api/v1/students/stu-1/notifications").get_json()["total"] == 1


def test_mark_read_missing_404(client):
    res = client.post("/api/v1/notifications/missing/read")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_read_all(client):
    _seed_ledgers(client)
    client.post("/api/v1/grades", json={
        "student_id": "stu-1", "subject_id": "math",
        "academic_session": "2024/2025", "term": "Second Term",
        "first_ca": 10, "second_ca": 10, "exam": 40,
    })
    client.post("/api/v1/students/stu-1/notifications/refresh")

    res = client.post("/api/v1/students/stu-1/notifications/read-all")
    assert res.get_json() == {"marked_read": 2}
    res = client.post("/api/v1/students/stu-1/notifications/read-all")
    assert res.get_json() == {"marked_read": 0}
