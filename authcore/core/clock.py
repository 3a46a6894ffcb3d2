"""Injectable source of "now" for every expiry comparison."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(UTC)
