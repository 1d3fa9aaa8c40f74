"""
Timestamp helpers shared by the table models.
All ledger timestamps are timezone-aware UTC.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# Column type for every timestamp field
TIMESTAMP = DateTime(timezone=True)
