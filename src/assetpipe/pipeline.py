from __future__ import annotations

import threading
from typing import List, Optional

from .config import Mode, PipelineConfig
from .core import describe, execute
from .errors import GraphFailure
from .logging import get_logger
from .server import DevServer
from .tasks import GraphBuilder, WatchBinding
from .watcher import ChangeWatcher


class AssetPipeline:
    """Composes the dev and release runs over one configuration."""

    def __init__(self, config: PipelineConfig, server: Optional[DevServer] = None):
        self.config = config
        self.server = server
        reload = server.notify_reloadable if server is not None else None
        self.builder = GraphBuilder(config, reload=reload)
        self.logger = get_logger("assetpipe.pipeline")
        self.watcher: Optional[ChangeWatcher] = None
        self._stop = threading.Event()
        # Set once serving and watching are up.
        self.ready = threading.Event()

    def _report(self, failure: GraphFailure, what: str) -> None:
        for f in failure.failures:
            self.logger.error("%s failed at stage %s: %s", what, f.unit, f.error)

    def build_dev(self) -> Optional[GraphFailure]:
        """Clean the dev root and run every transform concurrently."""
        graph = self.builder.build_graph(self.builder.dev_startup_plan(), Mode.DEV)
        self.logger.info("Initial build: %s", describe(graph))
        try:
            execute(graph)
        except GraphFailure as e:
            self._report(e, "Initial build")
            return e
        return None

    def build_release(self) -> Optional[GraphFailure]:
        graph = self.builder.build_graph(self.builder.release_plan(), Mode.RELEASE)
        self.logger.info("Release build: %s", describe(graph))
        try:
            execute(graph)
        except GraphFailure as e:
            self._report(e, "Release build")
            return e
        self.logger.info("Release written to %s", self.config.output_root(Mode.RELEASE))
        return None

    def start_watching(self, watcher: Optional[ChangeWatcher] = None) -> List[WatchBinding]:
        self.watcher = watcher or ChangeWatcher(self.config.root)
        bindings = self.builder.bindings()
        for binding in bindings:
            self.watcher.watch(binding)
        self.watcher.start()
        return bindings

    def run_dev(self, block: bool = True) -> int:
        """Initial build, then serve and watch until stopped. Returns an exit code."""
        if self.build_dev() is not None:
            return 1
        if self.server is not None:
            self.server.serve()
        try:
            self.start_watching()
        except Exception:
            self.shutdown()
            raise
        self.ready.set()
        if not block:
            return 0
        try:
            while not self._stop.wait(0.5):
                pass
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")
        finally:
            self.ready.clear()
            self.shutdown()
        return 0

    def run_release(self) -> int:
        return 1 if self.build_release() is not None else 0

    def stop(self) -> None:
        self._stop.set()

    def shutdown(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None
        if self.server is not None:
            self.server.shutdown()
