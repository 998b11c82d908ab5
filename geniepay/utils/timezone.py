"""
Gestion centralisée des dates.
Toutes les dates sont stockées en UTC ; SQLite les relit sans fuseau,
d'où make_aware() avant toute comparaison.
"""
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_aware(dt: datetime) -> datetime:
    """Force le fuseau UTC sur une date naïve (relue depuis la base)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def days_from_now(days: int) -> datetime:
    return utcnow() + timedelta(days=days)


def is_expired(expires_at: datetime) -> bool:
    return utcnow() > make_aware(expires_at)
