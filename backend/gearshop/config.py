"""
Configuration for the gear shop scraper.

Settings come from environment variables. A .env file in the backend
directory is loaded first if present, without overriding variables that
are already set.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Load .env from backend directory
_backend_dir = Path(__file__).parent.parent
_env_path = _backend_dir / ".env"

DEFAULT_GEARSHOP_URL = "https://rivian.com/gear-shop"
DEFAULT_GEARSHOP_HOSTNAME = "https://rivian.com"
DEFAULT_TABLE_NAME = "gearshop_products"
DEFAULT_DATABASE_FILE = "gearshop.db"
DEFAULT_REQUEST_TIMEOUT = 30.0

# Downstream transport limit on the candidate payload
MAX_PAYLOAD_BYTES = 6 * 1024 * 1024

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_TABLE_NAME_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]{0,62}$')


@dataclass(frozen=True)
class Settings:
    """Runtime settings for one process."""
    gearshop_url: str = DEFAULT_GEARSHOP_URL
    gearshop_hostname: str = DEFAULT_GEARSHOP_HOSTNAME
    table_name: str = DEFAULT_TABLE_NAME
    database_url: Optional[str] = None
    database_file: str = DEFAULT_DATABASE_FILE
    local: bool = False
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    webhook_url: Optional[str] = None
    referral_code: Optional[str] = None
    log_level: str = "INFO"
    max_payload_bytes: int = MAX_PAYLOAD_BYTES

    def __post_init__(self):
        if not _TABLE_NAME_RE.match(self.table_name):
            raise ValueError(f"Invalid table name: {self.table_name!r}")
        if self.request_timeout <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive")

    @property
    def skip_external(self) -> bool:
        """True when no non-idempotent external service may be called."""
        return self.local


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def is_local_environment(environ=None) -> bool:
    """Check for local mode (ENVIRONMENT=local or SKIP_EXTERNAL set)."""
    environ = os.environ if environ is None else environ
    return (
        environ.get("ENVIRONMENT", "").strip().lower() == "local"
        or _env_flag(environ.get("SKIP_EXTERNAL"))
    )


def load_settings(env_path: Optional[Path] = None, **overrides) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_path: .env file to load. Defaults to backend/.env.
        **overrides: Field values that take precedence over the environment.

    Raises:
        ValueError: If a value is malformed.
    """
    load_dotenv(env_path or _env_path)

    timeout_raw = os.getenv("REQUEST_TIMEOUT")
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_REQUEST_TIMEOUT
    except ValueError:
        raise ValueError(f"REQUEST_TIMEOUT is not a number: {timeout_raw!r}")

    values = {
        'gearshop_url': os.getenv("GEARSHOP_URL") or DEFAULT_GEARSHOP_URL,
        'gearshop_hostname': os.getenv("GEARSHOP_HOSTNAME") or DEFAULT_GEARSHOP_HOSTNAME,
        'table_name': os.getenv("PRODUCTS_TABLE_NAME") or DEFAULT_TABLE_NAME,
        'database_url': os.getenv("DATABASE_URL") or None,
        'database_file': os.getenv("DATABASE_FILE") or DEFAULT_DATABASE_FILE,
        'local': is_local_environment(),
        'request_timeout': timeout,
        'webhook_url': os.getenv("NOTIFY_WEBHOOK_URL") or None,
        'referral_code': os.getenv("REFERRAL_CODE") or None,
        'log_level': (os.getenv("LOG_LEVEL") or "INFO").upper(),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once for CLI and API processes."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
