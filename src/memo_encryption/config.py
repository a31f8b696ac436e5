"""
Runtime configuration read from the environment (and an optional .env file).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from .envelope import EnvelopeFormat
from .errors import ConfigurationError
from .fallback import DECRYPTION_FAILED_SENTINEL
from .key_provider import DEFAULT_MASTER_KEY_SALT, MASTER_SECRET_ENV


@dataclass(frozen=True)
class Settings:
    """Deployment settings for the encryption layer."""

    encryption_key: Optional[str] = field(default=None, repr=False)
    master_key_salt: str = DEFAULT_MASTER_KEY_SALT
    envelope_format: EnvelopeFormat = EnvelopeFormat.COMBINED
    decryption_sentinel: str = DECRYPTION_FAILED_SENTINEL
    batch_item_timeout: Optional[float] = None
    database_url: Optional[str] = field(default=None, repr=False)
    log_level: str = "INFO"

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        load_env_file: bool = True,
    ) -> Settings:
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read instead of os.environ
            load_env_file: Load a .env file into os.environ first (ignored
                when environ is given)

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        if environ is None:
            if load_env_file:
                load_dotenv()
            environ = os.environ

        timeout_raw = environ.get("BATCH_ITEM_TIMEOUT")
        timeout: Optional[float] = None
        if timeout_raw:
            try:
                timeout = float(timeout_raw)
            except ValueError:
                raise ConfigurationError(f"Invalid BATCH_ITEM_TIMEOUT: {timeout_raw}")
            if timeout <= 0:
                raise ConfigurationError("BATCH_ITEM_TIMEOUT must be positive")

        return cls(
            encryption_key=environ.get(MASTER_SECRET_ENV) or None,
            master_key_salt=environ.get("MASTER_KEY_SALT") or DEFAULT_MASTER_KEY_SALT,
            envelope_format=EnvelopeFormat.from_str(environ.get("ENVELOPE_FORMAT") or "combined"),
            decryption_sentinel=environ.get("DECRYPTION_SENTINEL") or DECRYPTION_FAILED_SENTINEL,
            batch_item_timeout=timeout,
            database_url=environ.get("DATABASE_URL") or None,
            log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
        )
