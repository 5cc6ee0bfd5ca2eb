"""Demo data seeding."""

from app.services.demo_seed import seed_demo_data


def test_seed_counts_and_idempotence(services):
    counts = seed_demo_data(services)
    assert counts == {"payments": 27, "grades": 15, "workflow_records": 4}
    assert seed_demo_data(services) == {}


def test_seeded_figures(services):
    seed_demo_data(services)
    ledger = services.ledger

    assert ledger.sessions_with_payments() == ["2023/2024", "2024/2025", "2025/2026"]
    assert ledger.approved_expenditure_total("2024/2025", "First Term") == 45000

    stats = services.workflow.statistics("expenditure_request")
    assert stats["approved"] == 1
    assert stats["submitted"] == 1

    notifications = services.notifications.refresh("student-demo-1")
    assert {(n.academic_session, n.term) for n in notifications} >= {("2024/2025", "First Term")}
