"""Runtime settings read from the environment (and a local ``.env`` file)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be a number, got {raw!r}") from exc


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class ScrutinySettings:
    """Knobs that change how strictly input files are treated.

    Attributes
    ----------
    strict_letters : bool
        When ``True`` an unknown letter in a number sequence raises
        :class:`~escrutinio.errors.UnknownLetterError` instead of being
        reported as a soft warning.
    malformed_threshold : float
        Ratio of malformed lines (0.0-1.0) above which a batch is considered
        suspicious.
    fail_on_malformed : bool
        Raise :class:`~escrutinio.errors.MalformedInputError` instead of only
        logging when ``malformed_threshold`` is exceeded.
    shard_size : int
        Number of records tallied per shard.
    """

    strict_letters: bool = False
    malformed_threshold: float = 0.01
    fail_on_malformed: bool = False
    shard_size: int = 50_000

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ScrutinySettings":
        """Build settings from ``env`` (defaults to :data:`os.environ`)."""
        env = os.environ if env is None else env
        shard_size = _env_int(env, "ESCRUTINIO_SHARD_SIZE", cls.shard_size)
        if shard_size <= 0:
            raise ValueError("ESCRUTINIO_SHARD_SIZE must be positive")
        return cls(
            strict_letters=_env_flag(env, "ESCRUTINIO_STRICT_LETTERS", cls.strict_letters),
            malformed_threshold=_env_float(
                env, "ESCRUTINIO_MALFORMED_THRESHOLD", cls.malformed_threshold
            ),
            fail_on_malformed=_env_flag(
                env, "ESCRUTINIO_FAIL_ON_MALFORMED", cls.fail_on_malformed
            ),
            shard_size=shard_size,
        )


__all__ = ["ScrutinySettings"]
