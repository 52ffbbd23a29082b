"""Cache freshness policy for data synced from GitHub.

A cached row is stale when it has never been synced or when its `cached_at`
timestamp is older than the TTL. Data exactly TTL old is still fresh.
"""

from datetime import UTC, datetime, timedelta

from src.config import get_settings

CACHE_TTL = timedelta(seconds=get_settings().cache_ttl_seconds)

NEVER_SYNCED = "Never synced"


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_stale(
    cached_at: datetime | None,
    now: datetime | None = None,
    ttl: timedelta = CACHE_TTL,
) -> bool:
    """Check whether cached data must be refetched before being trusted.

    Args:
        cached_at: Last successful sync time (None if never synced)
        now: Current time (default: now in UTC)
        ttl: Freshness window

    Returns:
        True if never synced or older than ttl
    """
    if cached_at is None:
        return True
    now = _as_utc(now or datetime.now(UTC))
    return now - _as_utc(cached_at) > ttl


def stale_cutoff(now: datetime | None = None, ttl: timedelta = CACHE_TTL) -> datetime:
    """Get the timestamp before which `cached_at` values are stale.

    SQL filters use `cached_at IS NULL OR cached_at < cutoff`, matching
    `is_stale`.
    """
    return _as_utc(now or datetime.now(UTC)) - ttl


def freshness_in_words(cached_at: datetime | None, now: datetime | None = None) -> str:
    """Describe how long ago data was synced.

    Buckets truncate, they never round: 59s is "59 seconds ago",
    3599s is "59 minutes ago".

    Args:
        cached_at: Last successful sync time (None if never synced)
        now: Current time (default: now in UTC)

    Returns:
        "Never synced" or "N seconds|minutes|hours|days ago"
    """
    if cached_at is None:
        return NEVER_SYNCED

    now = _as_utc(now or datetime.now(UTC))
    # Clock skew between app servers can put cached_at slightly in the future
    seconds = max((now - _as_utc(cached_at)).total_seconds(), 0.0)

    if seconds < 60:
        amount, unit = int(seconds), "seconds"
    elif seconds < 3600:
        amount, unit = int(seconds / 60), "minutes"
    elif seconds < 86_400:
        amount, unit = int(seconds / 3600), "hours"
    else:
        amount, unit = int(seconds / 86_400), "days"

    return f"{amount} {unit} ago"


def advance_cached_at(previous: datetime | None, now: datetime | None = None) -> datetime:
    """Get the new `cached_at` for a successful sync; it never moves backwards."""
    now = _as_utc(now or datetime.now(UTC))
    if previous is None:
        return now
    return max(_as_utc(previous), now)
