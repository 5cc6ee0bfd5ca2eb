"""
Demo data seeding — backs the ``flask seed-demo-data`` CLI command.

Loads a deterministic set of students, grades, payments and workflow records
through the services (never straight into the tables) so every validation
rule and derived field applies. Does nothing when payments already exist.
"""

import logging
from datetime import datetime, timezone

from app.models.ledger import PAYMENT_METHODS, TERMS

logger = logging.getLogger(__name__)

DEMO_SESSIONS = ("2023/2024", "2024/2025", "2025/2026")

DEMO_STUDENTS = (
    ("student-demo-1", "David Smith", "SPA/2023/001"),
    ("student-demo-2", "John Adebayo", "SPA/2023/002"),
    ("student-demo-3", "Sarah Johnson", "SPA/2023/003"),
    ("student-demo-4", "Michael Brown", "SPA/2023/004"),
    ("student-demo-5", "Fatima Hassan", "SPA/2023/005"),
)

DEMO_SUBJECTS = (
    ("math", "Mathematics"),
    ("eng", "English Language"),
    ("bio", "Biology"),
)

DEMO_BANKS = ("First Bank Nigeria", "GTBank", "Access Bank", "UBA", "Zenith Bank")


def _demo_payments():
    counter = 1
    for s_index, session in enumerate(DEMO_SESSIONS):
        start_year = int(session.split("/")[0])
        for t_index, term in enumerate(TERMS):
            for offset in range(3):
                student_id, name, admission = DEMO_STUDENTS[(counter + offset) % len(DEMO_STUDENTS)]
                method = PAYMENT_METHODS[counter % len(PAYMENT_METHODS)]
                yield {
                    "student_id": student_id,
                    "student_name": name,
                    "admission_number": admission,
                    "receipt_number": f"SPA/{start_year}/{counter:04d}",
                    "amount": 30000 + ((counter * 15000) % 120000),
                    "payment_method": method,
                    "bank_name": DEMO_BANKS[counter % len(DEMO_BANKS)] if method == "Bank Transfer" else None,
                    "transaction_id": f"TXN{start_year}{counter:05d}",
                    "description": f"School Fees Payment - {term}",
                    "academic_session": session,
                    "term": term,
                    "date_issued": datetime(start_year + (1 if t_index else 0), 1 + t_index * 4,
                                            1 + s_index * 7, tzinfo=timezone.utc),
                    "confirmed_by": "accountant-1",
                }
                counter += 1


def _demo_grades():
    session = "2024/2025"
    for s_index, (student_id, name, admission) in enumerate(DEMO_STUDENTS):
        for j, (subject_id, subject_name) in enumerate(DEMO_SUBJECTS):
            yield {
                "student_id": student_id,
                "student_name": name,
                "admission_number": admission,
                "subject_id": subject_id,
                "subject_name": subject_name,
                "class_id": "jss1",
                "teacher_id": "teacher-1",
                "academic_session": session,
                "term": "First Term",
                "first_ca": 10 + (s_index + j) % 10,
                "second_ca": 12 + (s_index * 2 + j) % 8,
                "exam": 30 + (s_index * 7 + j * 5) % 30,
            }


def seed_demo_data(services) -> dict:
    """
    Populate the ledgers and workflow with demo records.

    Returns:
        Counts per record type ({} when data already exists).
    """
    ledger = services.ledger
    workflow = services.workflow

    if ledger.store.list_periods("payments"):
        logger.info("Demo seed skipped — payments already present")
        return {}

    payments = [ledger.record_payment(p) for p in _demo_payments()]
    grades = [ledger.record_grade(g) for g in _demo_grades()]

    books = workflow.create("expenditure_request", {
        "owner_id": "accountant-1",
        "owner_name": "School Accountant",
        "academic_session": "2024/2025",
        "term": "First Term",
        "title": "Library books restock",
        "description": "Replacement textbooks for JSS1",
        "amount": 45000,
        "category": "supplies",
        "priority": "high",
    })
    workflow.submit(books.id)
    workflow.approve(books.id, "admin-1", "Administrator", "Approved for first term")

    generator = workflow.create("expenditure_request", {
        "owner_id": "accountant-1",
        "owner_name": "School Accountant",
        "academic_session": "2024/2025",
        "term": "First Term",
        "title": "Generator servicing",
        "amount": 25000,
        "category": "maintenance",
    })
    workflow.submit(generator.id)

    report = workflow.create("financial_report", {
        "owner_id": "accountant-1",
        "owner_name": "School Accountant",
        "academic_session": "2024/2025",
        "term": "First Term",
        "title": "First Term Financial Report",
        "content": "Fee collection and approved spending for the term.",
    })

    exam_report = workflow.create("exam_officer_report", {
        "owner_id": "exam-officer-1",
        "owner_name": "Exam Officer",
        "academic_session": "2024/2025",
        "term": "First Term",
        "title": "First Term Examination Summary",
        "content": "All subjects graded; results ready for release.",
    })
    workflow.submit(exam_report.id)

    counts = {
        "payments": len(payments),
        "grades": len(grades),
        "workflow_records": len([books, generator, report, exam_report]),
    }
    logger.info("Demo data seeded: %s", counts)
    return counts
