"""
cosmwasm-simulate (cw_simulate) — package marker and public entrypoints.

A local harness that loads smart-contract code, gives it a mocked chain
(accounts, gas-metered storage, query routing, cross-contract dispatch) and
drives its instantiate / execute / query entry points.

- simulate(path, ...) -> Simulator
    Build a Chain, load the artifact (and its contract/ siblings) and return a
    Simulator whose ``call(kind, payload, account)`` is the single entry point.
- Chain, Simulator
    The engine objects, for callers that want to wire things themselves.

Heavy imports are lazy so ``import cw_simulate`` stays cheap for the CLI.
"""

from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any, Optional, Union

from .version import __version__


def version() -> str:
    """Return the cosmwasm-simulate semantic version string."""
    return __version__


def simulate(path: Union[str, Path], *, settings: Optional[Any] = None, **settings_overrides: Any) -> Any:
    """
    Load the contract at `path` (plus ``contract/<d>/<d>.<ext>`` siblings) into
    a fresh Chain and return a Simulator targeting it.
    """
    config = importlib.import_module(".config", __name__)
    engine = importlib.import_module(".engine", __name__)

    cfg = settings or config.load_settings(**settings_overrides)
    chain = engine.Chain(cfg)
    artifacts = engine.discover_artifacts(Path(path), contract_folder=cfg.contract_folder)
    engine.Watcher(chain, artifacts).load_all()
    return engine.Simulator(chain, contract=artifacts[0].address)


def __getattr__(name: str) -> Any:
    if name in ("Chain", "Simulator"):
        return getattr(importlib.import_module(".engine", __name__), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["__version__", "version", "simulate", "Chain", "Simulator"]
