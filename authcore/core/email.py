"""Outbound email: delivery collaborator and fire-and-forget dispatcher.

ResendEmailSender is a plain HTTP POST to the Resend API (plain-text
bodies). EmailDispatcher decouples delivery from the transactional outcome
of registration and reset-issuance: a failed send is logged, never raised
into the operation that requested it.
"""

import asyncio
import logging
from enum import Enum
from typing import Protocol

import httpx

from authcore.core.config import Settings
from authcore.core.errors import DeliveryError

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


class EmailPurpose(str, Enum):
    REGISTRATION = "registration"
    PASSWORD_RESET = "password_reset"
    WELCOME = "welcome"


class EmailSender(Protocol):
    async def send(
        self,
        to_address: str,
        purpose: EmailPurpose,
        code: str | None,
        display_name: str,
    ) -> None: ...


def render_email(
    purpose: EmailPurpose, code: str | None, display_name: str, ttl_minutes: int
) -> tuple[str, str]:
    """Build (subject, plain-text body) for a purpose."""
    if purpose is EmailPurpose.REGISTRATION:
        return (
            "Your verification code",
            f"Hi {display_name},\n\n"
            f"Use this code to verify your account: {code}\n\n"
            f"This code expires in {ttl_minutes} minutes.",
        )
    if purpose is EmailPurpose.PASSWORD_RESET:
        return (
            "Your password reset code",
            f"Hi {display_name},\n\n"
            f"Use this code to reset your password: {code}\n\n"
            f"This code expires in {ttl_minutes} minutes. "
            "If you didn't request this, you can safely ignore this email.",
        )
    return (
        "Welcome!",
        f"Welcome, {display_name}!\n\nYour account is now verified.",
    )


class ResendEmailSender:
    """EmailSender backed by the Resend HTTP API.

    Args:
        settings: Provides the API key, sender address and code TTL.
        client: Optional shared httpx client (tests inject a mock transport).
    """

    def __init__(
        self, settings: Settings, client: httpx.AsyncClient | None = None
    ) -> None:
        self._api_key = settings.resend_api_key.get_secret_value()
        self._from = settings.email_from
        self._ttl_minutes = settings.verification_code_ttl_minutes
        self._client = client

    async def send(
        self,
        to_address: str,
        purpose: EmailPurpose,
        code: str | None,
        display_name: str,
    ) -> None:
        """Send one email.

        Raises:
            DeliveryError: If the provider rejects the request or is unreachable.
        """
        subject, text = render_email(purpose, code, display_name, self._ttl_minutes)
        try:
            if self._client is not None:
                await self._post(self._client, to_address, subject, text)
            else:
                async with httpx.AsyncClient() as client:
                    await self._post(client, to_address, subject, text)
        except httpx.HTTPError as exc:
            raise DeliveryError() from exc

    async def _post(
        self, client: httpx.AsyncClient, to_address: str, subject: str, text: str
    ) -> None:
        resp = await client.post(
            _RESEND_API_URL,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={
                "from": self._from,
                "to": to_address,
                "subject": subject,
                "text": text,
            },
            timeout=_RESEND_TIMEOUT,
        )
        resp.raise_for_status()


class EmailDispatcher:
    """Schedule sends as background tasks with a logged error channel.

    Task references are held until completion so they are not garbage
    collected mid-flight.
    """

    def __init__(self, sender: EmailSender) -> None:
        self._sender = sender
        self._tasks: set[asyncio.Task[None]] = set()

    def dispatch(
        self,
        to_address: str,
        purpose: EmailPurpose,
        code: str | None,
        display_name: str,
    ) -> asyncio.Task[None]:
        task = asyncio.create_task(
            self._deliver(to_address, purpose, code, display_name)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every outstanding send (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _deliver(
        self,
        to_address: str,
        purpose: EmailPurpose,
        code: str | None,
        display_name: str,
    ) -> None:
        try:
            await self._sender.send(to_address, purpose, code, display_name)
        except DeliveryError:
            logger.warning("Failed to send %s email", purpose.value, exc_info=True)
        except Exception:
            logger.exception("Unexpected error sending %s email", purpose.value)
        else:
            logger.info("Sent %s email", purpose.value)
