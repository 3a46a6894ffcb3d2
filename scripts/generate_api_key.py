"""Provision an API key.

Standalone script. Prints the raw key once; only its fingerprint is stored.

Usage:
    python -m scripts.generate_api_key --permission data:read --permission data:write
"""

import argparse
import logging
import secrets

from sqlalchemy.ext.asyncio import AsyncSession

from authcore.models.api_key import PERMISSION_GENERAL, PERMISSIONS, ApiKey
from authcore.repositories.api_key_repository import ApiKeyRepository

logger = logging.getLogger(__name__)

# 32 random bytes, url-safe
_KEY_BYTES = 32
_KEY_PREFIX = "ak_"


def generate_raw_key() -> str:
    return _KEY_PREFIX + secrets.token_urlsafe(_KEY_BYTES)


async def provision_api_key(
    session: AsyncSession,
    permissions: list[str],
    *,
    version: int = 1,
) -> tuple[str, ApiKey]:
    """Create a key with the given permissions.

    Args:
        session: Active async database session (caller commits).
        permissions: Permission names; must be known.
        version: Key format version.

    Returns:
        (raw key, stored ApiKey row).

    Raises:
        ValidationError: If a permission name is unknown.
    """
    raw_key = generate_raw_key()
    api_key = await ApiKeyRepository.create(
        session, raw_key=raw_key, permissions=permissions, version=version
    )
    logger.info(
        "Provisioned API key %s with permissions %s", api_key.id, api_key.permissions
    )
    return raw_key, api_key


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--permission",
        action="append",
        choices=PERMISSIONS,
        dest="permissions",
        help="Permission to grant (repeatable). Defaults to 'general'.",
    )
    parser.add_argument("--version", type=int, default=1)
    return parser.parse_args(argv)


async def main() -> None:
    """CLI entry point: provision a key against the configured database."""
    from authcore.core.config import get_settings
    from authcore.core.database import (
        create_engine,
        create_session_factory,
        transaction_scope,
    )
    from authcore.core.logging import configure_logging

    args = _parse_args()
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)

    engine = create_engine(settings)
    async with transaction_scope(create_session_factory(engine)) as session:
        raw_key, _ = await provision_api_key(
            session,
            args.permissions or [PERMISSION_GENERAL],
            version=args.version,
        )
    await engine.dispose()

    print(raw_key)


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
