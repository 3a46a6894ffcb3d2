"""structlog configuration.

Security events (failed logins, token reuse, mass revocation) are emitted
as structured records. Keys that look like credentials are redacted before
rendering so a misplaced ``token=...`` never reaches the log sink.
"""

import logging
from typing import Any

import structlog

_REDACTED_KEYS = ("password", "secret", "token", "code", "authorization", "api_key")


def _redact_credentials(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask values whose key names suggest a credential."""
    for key in list(event_dict):
        if key == "event":
            continue
        lowered = key.lower()
        if any(marker in lowered for marker in _REDACTED_KEYS):
            value = event_dict[key]
            if isinstance(value, str) and len(value) > 4:
                event_dict[key] = value[:2] + "***"
    return event_dict


def configure_logging(log_level: str = "INFO", *, json_output: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR).
        json_output: JSON lines when True, colored console output otherwise.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_credentials,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
