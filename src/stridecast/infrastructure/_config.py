"""
Environment-driven configuration.

All knobs are read from environment variables once and cached; tests (or
long-running processes that change the environment) call `reload_config()`.

Variables
---------
STRIDECAST_DEBUG_CHECKS
    Enable the explicit precondition validation pass at the public copy entry
    points. Off by default; ``"0"``, ``""`` and ``"false"`` (any case) mean
    off.
STRIDECAST_INDEX_WIDTH
    ``"default"`` (32-bit index vectors) or ``"wide"`` (64-bit). Used when a
    caller does not pick a width explicitly. Defaults to ``"wide"``.
STRIDECAST_LOG_LEVEL
    Level name for the ``stridecast`` logger (default ``"WARNING"``). The
    generic ``DEBUG`` variable, when set, forces ``DEBUG``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from ..domain._copy_type import IndexWidth

_FALSY = ("0", "", "false")


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "0").strip().lower() not in _FALSY


@dataclass(frozen=True)
class CopyConfig:
    """
    Resolved runtime configuration.

    Attributes
    ----------
    debug_checks : bool
        Whether public entry points validate their inputs before copying.
    index_width : IndexWidth
        Index width used when the caller does not pass one.
    log_level : int
        Numeric logging level for the package logger.
    """

    debug_checks: bool = False
    index_width: IndexWidth = IndexWidth.WIDE
    log_level: int = logging.WARNING


def load_config(env: Optional[Mapping[str, str]] = None) -> CopyConfig:
    """
    Build a `CopyConfig` from environment variables.

    Parameters
    ----------
    env : Mapping[str, str], optional
        Variable source. Defaults to ``os.environ``.

    Raises
    ------
    ValueError
        If ``STRIDECAST_INDEX_WIDTH`` or ``STRIDECAST_LOG_LEVEL`` holds an
        unknown value.
    """
    if env is None:
        env = os.environ

    width_raw = env.get("STRIDECAST_INDEX_WIDTH", IndexWidth.WIDE.value)
    try:
        index_width = IndexWidth(width_raw.strip().lower())
    except ValueError:
        raise ValueError(
            f"Invalid STRIDECAST_INDEX_WIDTH {width_raw!r}. Expected 'default' or 'wide'"
        )

    if env.get("DEBUG"):
        log_level = logging.DEBUG
    else:
        level_raw = env.get("STRIDECAST_LOG_LEVEL", "WARNING").strip().upper()
        log_level = logging.getLevelName(level_raw)
        if not isinstance(log_level, int):
            raise ValueError(f"Invalid STRIDECAST_LOG_LEVEL {level_raw!r}")

    return CopyConfig(
        debug_checks=_env_flag(env, "STRIDECAST_DEBUG_CHECKS"),
        index_width=index_width,
        log_level=log_level,
    )


@lru_cache(maxsize=1)
def get_config() -> CopyConfig:
    """Return the process-wide configuration (cached)."""
    return load_config()


def reload_config() -> CopyConfig:
    """Drop the cached configuration and read the environment again."""
    get_config.cache_clear()
    return get_config()
