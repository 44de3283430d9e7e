"""Runtime settings for pulsedash.

Defaults come from the constants below, may be overridden through
``PULSEDASH_*`` environment variables, and finally by command line flags.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
SAMPLE_INTERVAL_SECONDS = 2.0
KEEP_EVENTS = 10
INVENTORY_POLL_SECONDS = 30.0
SUSPEND_GRACE_SECONDS = 15.0
SLOW_INVENTORY_SECONDS = 5.0
PING_INTERVAL_SECONDS = 5.0

BUNDLED_WEB_ROOT = Path(__file__).parent / "web"


def _env(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def _int_env(name: str, default: int, minimum: int | None = None) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s: %r, using %s", name, raw, default)
        return default
    if minimum is not None and value < minimum:
        logger.warning("%s must be at least %s, got %s, using %s", name, minimum, value, default)
        return default
    return value


def _float_env(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid number for %s: %r, using %s", name, raw, default)
        return default


@dataclass(slots=True, frozen=True)
class Settings:
    """Immutable server configuration."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    web_root: Path = field(default=BUNDLED_WEB_ROOT)
    log_level: str = "INFO"
    sample_interval: float = SAMPLE_INTERVAL_SECONDS
    keep_events: int = KEEP_EVENTS
    inventory_poll_interval: float = INVENTORY_POLL_SECONDS
    suspend_grace: float = SUSPEND_GRACE_SECONDS
    slow_inventory_threshold: float = SLOW_INVENTORY_SECONDS
    ping_interval: float = PING_INTERVAL_SECONDS

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``PULSEDASH_*`` environment variables."""
        web_root = _env("PULSEDASH_WEB_ROOT")
        return cls(
            host=_env("PULSEDASH_HOST") or DEFAULT_HOST,
            port=_int_env("PULSEDASH_PORT", DEFAULT_PORT),
            web_root=Path(web_root) if web_root else BUNDLED_WEB_ROOT,
            log_level=(_env("PULSEDASH_LOG_LEVEL") or "INFO").upper(),
            sample_interval=_float_env("PULSEDASH_SAMPLE_INTERVAL", SAMPLE_INTERVAL_SECONDS),
            keep_events=_int_env("PULSEDASH_KEEP_EVENTS", KEEP_EVENTS, minimum=1),
            inventory_poll_interval=_float_env("PULSEDASH_INVENTORY_POLL", INVENTORY_POLL_SECONDS),
            suspend_grace=_float_env("PULSEDASH_SUSPEND_GRACE", SUSPEND_GRACE_SECONDS),
        )

    def override(self, **changes: object) -> "Settings":
        """Return a copy with every non-None value in ``changes`` applied."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})
