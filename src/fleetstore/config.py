"""Store configuration for fleetstore."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any


def _env_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclasses.dataclass(frozen=True)
class StoreConfig:
    """Store configuration.

    Parameters
    ----------
    data_dir : Path
        Directory holding one ``<collection>.json`` file per collection.
    code_ttl_days : int
        Lifetime of a fleet join code in days.
    code_length : int
        Number of characters in a generated fleet code.
    code_max_attempts : int
        Collision retries before code generation gives up.
    scrypt_n : int
        scrypt CPU/memory cost (power of two).
    scrypt_r : int
        scrypt block size.
    scrypt_p : int
        scrypt parallelization factor.
    min_password_length : int
        Shortest password accepted at registration.
    persist_indent : int or None
        JSON indentation for collection files. ``None`` writes compact JSON.
    """

    data_dir: Path = Path("data")
    code_ttl_days: int = 7
    code_length: int = 8
    code_max_attempts: int = 10
    scrypt_n: int = 2**14
    scrypt_r: int = 8
    scrypt_p: int = 1
    min_password_length: int = 8
    persist_indent: int | None = 2

    @classmethod
    def from_env(cls, **overrides: Any) -> StoreConfig:
        """Create configuration from environment variables.

        Reads optional ``FLEETSTORE_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        StoreConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        data_dir = env.get("FLEETSTORE_DATA_DIR")
        if data_dir:
            config_kwargs["data_dir"] = Path(data_dir)

        _ENV_INT_MAP = {
            "FLEETSTORE_CODE_TTL_DAYS": "code_ttl_days",
            "FLEETSTORE_CODE_LENGTH": "code_length",
            "FLEETSTORE_CODE_MAX_ATTEMPTS": "code_max_attempts",
            "FLEETSTORE_SCRYPT_N": "scrypt_n",
            "FLEETSTORE_SCRYPT_R": "scrypt_r",
            "FLEETSTORE_SCRYPT_P": "scrypt_p",
            "FLEETSTORE_MIN_PASSWORD_LENGTH": "min_password_length",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_int(val, getattr(cls, field_name))

        # Empty string means compact output.
        indent_env = env.get("FLEETSTORE_PERSIST_INDENT")
        if indent_env is not None and "persist_indent" not in overrides:
            config_kwargs["persist_indent"] = (
                _env_int(indent_env, cls.persist_indent or 0) if indent_env.strip() else None
            )

        if "data_dir" in overrides:
            overrides["data_dir"] = Path(overrides["data_dir"])
        config_kwargs.update(overrides)

        return cls(**config_kwargs)
