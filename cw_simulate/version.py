"""
Version helpers for cosmwasm-simulate.

- ``__version__`` is the semantic version for packaging.
- ``compute_version()`` resolves env override → installed package metadata →
  the hardcoded base version.

Environment overrides:
- CWSIM_VERSION
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import metadata as importlib_metadata

# Bump this when making a release; use semver (MAJOR.MINOR.PATCH)
BASE_VERSION = "0.1.0"

_DIST_NAME = "cosmwasm-simulate"


@lru_cache(maxsize=1)
def compute_version() -> str:
    env = os.getenv("CWSIM_VERSION")
    if env:
        return env.strip()
    try:
        return importlib_metadata.version(_DIST_NAME)
    except importlib_metadata.PackageNotFoundError:
        return BASE_VERSION


__version__ = compute_version()

__all__ = ["__version__", "BASE_VERSION", "compute_version"]
