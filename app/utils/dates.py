from datetime import datetime, timezone


def utcnow() -> datetime:
    # Naive UTC, matching what SQLite and timezone-less columns hand back
    return datetime.now(timezone.utc).replace(tzinfo=None)
