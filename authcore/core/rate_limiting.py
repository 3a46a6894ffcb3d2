"""Attempt-frequency gate for unauthenticated auth operations.

Security: bounds brute-force and abuse of login, registration and password
reset by limiting attempts per caller identity (IP or similar) and route
class, using a moving window from the limits library.

Two tiers:
- auth: login/registration-adjacent operations
- strict: operations that trigger outbound email (higher abuse value)

Usage by a transport layer:
    gate = RateGate.from_settings(settings)
    gate.admit("login", client_ip)   # raises RateLimitExceededError
    result = await engine.login(email, password)
"""

import logging
import math
import time
from enum import Enum

from limits import RateLimitItem, parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from authcore.core.config import Settings
from authcore.core.errors import RateLimitExceededError

logger = logging.getLogger(__name__)

# Development mode multiplies every limit to avoid interrupting local work
_DEVELOPMENT_MULTIPLIER = 10


class RouteClass(str, Enum):
    AUTH = "auth"
    STRICT = "strict"


# Operation name -> tier. Operations not listed are not rate limited here
# (refresh/logout carry a signed token already; change-password and
# logout-all require an authenticated caller).
ROUTE_CLASSES: dict[str, RouteClass] = {
    "register": RouteClass.AUTH,
    "verify_email": RouteClass.AUTH,
    "login": RouteClass.AUTH,
    "verify_reset_code": RouteClass.AUTH,
    "reset_password": RouteClass.AUTH,
    "resend_verification": RouteClass.STRICT,
    "forgot_password": RouteClass.STRICT,
}


def _scaled(item: RateLimitItem, multiplier: int) -> RateLimitItem:
    if multiplier == 1:
        return item
    return type(item)(item.amount * multiplier, item.multiples)


class RateGate:
    """Admit or reject attempts per (route class, caller identity).

    Args:
        limits_by_class: Rate limit per route class.
        storage_uri: limits storage URI ("memory://", "redis://...").
        enabled: When False every attempt is admitted.
    """

    def __init__(
        self,
        limits_by_class: dict[RouteClass, RateLimitItem],
        *,
        storage_uri: str = "memory://",
        enabled: bool = True,
    ) -> None:
        self.enabled = enabled
        self._limits = dict(limits_by_class)
        self._storage = storage_from_string(storage_uri)
        self._limiter = MovingWindowRateLimiter(self._storage)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateGate":
        multiplier = (
            _DEVELOPMENT_MULTIPLIER if settings.environment == "development" else 1
        )
        return cls(
            {
                RouteClass.AUTH: _scaled(parse(settings.rate_limit_auth), multiplier),
                RouteClass.STRICT: _scaled(
                    parse(settings.rate_limit_strict), multiplier
                ),
            },
            storage_uri=settings.rate_limit_storage_uri,
            enabled=settings.rate_limit_enabled,
        )

    def limit_for(self, operation: str) -> RateLimitItem | None:
        route_class = ROUTE_CLASSES.get(operation)
        if route_class is None:
            return None
        return self._limits.get(route_class)

    def admit(self, operation: str, identity: str) -> None:
        """Record one attempt, raising if the caller is over the limit.

        Args:
            operation: Engine operation name (e.g. "login").
            identity: Caller identity, typically the client IP.

        Raises:
            RateLimitExceededError: With the seconds until the window frees up.
        """
        if not self.enabled:
            return
        item = self.limit_for(operation)
        if item is None:
            return

        route_class = ROUTE_CLASSES[operation].value
        if self._limiter.hit(item, route_class, identity):
            return

        stats = self._limiter.get_window_stats(item, route_class, identity)
        retry_after = max(1, math.ceil(stats.reset_time - time.time()))
        logger.warning(
            "Rate limit exceeded for %s (%s tier), retry in %ss",
            operation,
            route_class,
            retry_after,
        )
        raise RateLimitExceededError(retry_after=retry_after)

    def reset(self) -> None:
        """Clear every counter (tests, operator intervention)."""
        self._storage.reset()
