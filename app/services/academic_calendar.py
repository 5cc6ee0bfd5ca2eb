"""
Academic calendar helpers.

Sessions are named "YYYY/YYYY+1" and run from ``start_month`` of the first
year; every session has the fixed three-term cycle in ``TERMS``.
"""

from __future__ import annotations

import re
from datetime import date

from app.models.ledger import TERMS

FIRST_SESSION_YEAR = 2023
LAST_SESSION_YEAR = 2149
DEFAULT_START_MONTH = 9

_SESSION_RE = re.compile(r"^(\d{4})/(\d{4})$")


def session_name(start_year: int) -> str:
    return f"{start_year}/{start_year + 1}"


def generate_academic_sessions(first: int = FIRST_SESSION_YEAR, last: int = LAST_SESSION_YEAR) -> list[str]:
    """Oldest-first catalog of session names, ``first/first+1`` … ``last/last+1``."""
    return [session_name(year) for year in range(first, last + 1)]


ACADEMIC_SESSIONS = generate_academic_sessions()


def parse_session(value: str) -> int | None:
    """Return the start year of a well-formed session name, else None."""
    match = _SESSION_RE.match(value or "")
    if not match:
        return None
    start, end = int(match.group(1)), int(match.group(2))
    return start if end == start + 1 else None


def is_valid_term(term: str) -> bool:
    return term in TERMS


def current_session(today: date | None = None, start_month: int = DEFAULT_START_MONTH) -> str:
    """Session in progress on ``today`` (September start by default)."""
    today = today or date.today()
    start_year = today.year if today.month >= start_month else today.year - 1
    return session_name(start_year)


def recent_sessions(count: int, current: str | None = None, *,
                    today: date | None = None, start_month: int = DEFAULT_START_MONTH) -> list[str]:
    """The ``count`` sessions ending at ``current``, most recent first.

    Sessions before the school's first session are never returned.
    """
    if count <= 0:
        return []
    current = current or current_session(today, start_month)
    start_year = parse_session(current)
    if start_year is None:
        raise ValueError(f"Malformed academic session: {current!r}")
    years = range(start_year, max(start_year - count, FIRST_SESSION_YEAR - 1), -1)
    return [session_name(year) for year in years]
