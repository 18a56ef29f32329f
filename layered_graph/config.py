"""Process-wide defaults for how ``fill_edges`` spreads work over threads.

A builder constructed with its own :class:`BuilderConfig` ignores these.
"""

from __future__ import annotations

import copy

from .types import BuilderConfig

_BUILDER_CONFIG = BuilderConfig()


def get_builder_config() -> BuilderConfig:
    """Return a copy of the default thread-pool size, chunk size and parallel threshold."""

    return copy.deepcopy(_BUILDER_CONFIG)


def set_builder_config(config: BuilderConfig) -> None:
    """Replace the defaults used by builders created without a config."""

    global _BUILDER_CONFIG
    _BUILDER_CONFIG = copy.deepcopy(config)
