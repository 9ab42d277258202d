"""
cw_simulate.engine.watcher — artifact discovery and polling hot reload.

Artifact layout (relative to the main artifact ``<dir>/<name>.<ext>``)::

    <dir>/<name>.<ext>                       -> address "<name>"
    <dir>/contract/<other>/<other>.<ext>     -> address "<other>"

The watcher polls modification timestamps on its own thread and calls
``Registry.load_or_replace`` for every artifact whose timestamp changed. A
reload that fails is logged and the previous instance stays installed.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..errors import ConfigError
from ..logging import get_logger
from ..runtime.backend import registered_suffixes
from .chain import Chain

log = get_logger(__name__)


@dataclass(frozen=True)
class Artifact:
    address: str
    path: Path

    @property
    def suffix(self) -> str:
        return self.path.suffix


def discover_artifacts(
    main: Path,
    *,
    contract_folder: str = "contract",
    suffixes: Optional[Iterable[str]] = None,
) -> List[Artifact]:
    """The main artifact plus every ``contract/<d>/<d>.<ext>`` next to it."""
    main = Path(main)
    if not main.is_file():
        raise ConfigError(f"contract file not found: {main}", data={"path": str(main)})
    wanted = [s.lower() for s in (suffixes or registered_suffixes())]
    found = [Artifact(main.stem, main)]
    folder = main.parent / contract_folder
    if folder.is_dir():
        for d in sorted(p for p in folder.iterdir() if p.is_dir()):
            for suffix in wanted:
                candidate = d / f"{d.name}{suffix}"
                if candidate.is_file() and candidate.resolve() != main.resolve():
                    found.append(Artifact(d.name, candidate))
                    break
    return found


class Watcher:
    def __init__(self, chain: Chain, artifacts: Iterable[Artifact], *, interval: Optional[float] = None) -> None:
        self.chain = chain
        self.artifacts = list(artifacts)
        self.interval = chain.settings.watch_interval if interval is None else interval
        self._mtimes: Dict[Path, int] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def load_all(self) -> List[str]:
        """Initial load; failures here are fatal to the caller."""
        loaded = []
        for art in self.artifacts:
            self._load(art)
            loaded.append(art.address)
        return loaded

    def poll_once(self) -> List[str]:
        """Reload every artifact whose mtime changed. Returns reloaded addresses."""
        reloaded = []
        for art in self.artifacts:
            try:
                mtime = art.path.stat().st_mtime_ns
            except OSError as e:
                log.warning("artifact_unreadable", address=art.address, path=str(art.path), error=str(e))
                continue
            if self._mtimes.get(art.path) == mtime:
                continue
            try:
                self._load(art, mtime=mtime)
            except Exception as e:
                # keep the old instance; retry on the next change
                self._mtimes[art.path] = mtime
                log.error("reload_failed", address=art.address, path=str(art.path), error=str(e))
                continue
            reloaded.append(art.address)
        return reloaded

    def _load(self, art: Artifact, *, mtime: Optional[int] = None) -> None:
        code = art.path.read_bytes()
        if mtime is None:
            mtime = art.path.stat().st_mtime_ns
        self.chain.registry.load_or_replace(art.address, code, suffix=art.suffix)
        self._mtimes[art.path] = mtime

    # ------------------------------ thread ------------------------------ #

    def _loop(self) -> None:
        log.info("watcher_started", artifacts=[a.address for a in self.artifacts], interval=self.interval)
        while not self._stop.wait(self.interval):
            self.poll_once()
        log.info("watcher_stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="cw-simulate-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


__all__ = ["Artifact", "Watcher", "discover_artifacts"]
