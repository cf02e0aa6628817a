"""Driver-agnostic classification of integrity errors."""

from sqlalchemy.exc import IntegrityError

# 23505 = unique_violation
UNIQUE_VIOLATION = "23505"


def _sqlstate(orig: BaseException | None) -> str | None:
    # psycopg2 sets pgcode; asyncpg sets sqlstate on the wrapped cause
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code).strip()
    return None


def is_unique_violation(exc: IntegrityError) -> bool:
    """Return True when the integrity error came from a unique index."""
    code = _sqlstate(exc.orig)
    if code is not None:
        return code == UNIQUE_VIOLATION
    # sqlite3 exposes no SQLSTATE
    return "UNIQUE constraint failed" in str(exc.orig)
