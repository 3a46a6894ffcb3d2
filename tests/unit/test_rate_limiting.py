"""Tests for RateGate.

Security: bounds brute-force of login and abuse of email-sending
operations per caller identity and route class.
"""

import pytest
from limits import parse
from pydantic import SecretStr

from authcore.core.config import Settings
from authcore.core.errors import RateLimitExceededError
from authcore.core.rate_limiting import ROUTE_CLASSES, RateGate, RouteClass

_CLIENT = "203.0.113.7"
_OTHER_CLIENT = "198.51.100.2"


@pytest.fixture
def gate() -> RateGate:
    return RateGate(
        {
            RouteClass.AUTH: parse("3/15 minutes"),
            RouteClass.STRICT: parse("2/15 minutes"),
        }
    )


class TestRouteClasses:
    def test_email_sending_operations_are_strict(self):
        """Operations that send email sit in the stricter tier."""
        assert ROUTE_CLASSES["forgot_password"] is RouteClass.STRICT
        assert ROUTE_CLASSES["resend_verification"] is RouteClass.STRICT

    def test_credential_operations_are_auth(self):
        for operation in (
            "register",
            "login",
            "verify_email",
            "verify_reset_code",
            "reset_password",
        ):
            assert ROUTE_CLASSES[operation] is RouteClass.AUTH

    def test_refresh_is_not_limited(self, gate: RateGate):
        """Operations outside the table are always admitted."""
        assert gate.limit_for("refresh") is None
        for _ in range(10):
            gate.admit("refresh", _CLIENT)


class TestAdmit:
    def test_admits_up_to_limit_then_rejects(self, gate: RateGate):
        """The attempt after the limit raises with a positive retry_after."""
        for _ in range(3):
            gate.admit("login", _CLIENT)

        with pytest.raises(RateLimitExceededError) as exc_info:
            gate.admit("login", _CLIENT)

        assert 0 < exc_info.value.retry_after <= 15 * 60

    def test_operations_share_a_tier_allowance(self, gate: RateGate):
        """Attempts are counted per route class, not per operation."""
        gate.admit("login", _CLIENT)
        gate.admit("register", _CLIENT)
        gate.admit("verify_email", _CLIENT)

        with pytest.raises(RateLimitExceededError):
            gate.admit("reset_password", _CLIENT)

    def test_tiers_are_independent(self, gate: RateGate):
        """Exhausting the auth tier leaves the strict tier untouched."""
        for _ in range(3):
            gate.admit("login", _CLIENT)
        gate.admit("forgot_password", _CLIENT)

    def test_identities_are_independent(self, gate: RateGate):
        """One caller hitting its limit does not affect another."""
        for _ in range(2):
            gate.admit("forgot_password", _CLIENT)
        with pytest.raises(RateLimitExceededError):
            gate.admit("forgot_password", _CLIENT)

        gate.admit("forgot_password", _OTHER_CLIENT)

    def test_disabled_gate_admits_everything(self):
        disabled = RateGate({RouteClass.AUTH: parse("1/minute")}, enabled=False)
        for _ in range(5):
            disabled.admit("login", _CLIENT)

    def test_reset_clears_counters(self, gate: RateGate):
        for _ in range(3):
            gate.admit("login", _CLIENT)
        gate.reset()
        gate.admit("login", _CLIENT)


class TestFromSettings:
    def test_production_uses_configured_limits(self):
        settings = Settings(
            _env_file=None,
            environment="production",
            jwt_access_secret=SecretStr("a" * 64),
            jwt_long_lived_secret=SecretStr("b" * 64),
            resend_api_key=SecretStr("re_live_key"),
        )
        gate = RateGate.from_settings(settings)
        assert gate.limit_for("login").amount == 10
        assert gate.limit_for("forgot_password").amount == 5

    def test_development_multiplies_limits(self):
        """Local development gets ten times the allowance."""
        settings = Settings(_env_file=None, environment="development")
        gate = RateGate.from_settings(settings)
        login_limit = gate.limit_for("login")
        assert login_limit.amount == 100
        assert login_limit.get_expiry() == 15 * 60
