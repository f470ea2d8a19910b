"""File-system watching with per-binding debounce coalescing.

Each WatchBinding gets one CoalescingRunner. A trigger while the binding's
graph is running only marks it dirty; when the run finishes a single follow-up
run picks up everything that changed meanwhile. So a binding never has two
runs in flight against its destination, and bursts never queue up.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .core import execute
from .errors import GraphFailure, WatcherSubscriptionFailure
from .globs import GlobSet
from .logging import get_logger
from .tasks import WatchBinding


log = get_logger("assetpipe.watcher")

_RELEVANT = {"created", "modified", "deleted", "moved"}


class CoalescingRunner:
    def __init__(self, name: str, run: Callable[[], None], executor: Executor):
        self.name = name
        self._run = run
        self._executor = executor
        self._cond = threading.Condition()
        self._running = False
        self._pending = False
        self.runs = 0

    @property
    def busy(self) -> bool:
        with self._cond:
            return self._running

    def trigger(self) -> bool:
        """Schedule a run. Returns False when coalesced into a pending one."""
        with self._cond:
            if self._running:
                self._pending = True
                return False
            self._running = True
        self._executor.submit(self._drain)
        return True

    def _drain(self) -> None:
        while True:
            self.runs += 1
            try:
                self._run()
            except GraphFailure as e:
                for failure in e.failures:
                    log.error("Rebuild of %s failed: %s", self.name, failure)
            except Exception:  # noqa: BLE001
                log.exception("Rebuild of %s crashed", self.name)
            with self._cond:
                if not self._pending:
                    self._running = False
                    self._cond.notify_all()
                    return
                self._pending = False

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: not self._running, timeout=timeout)


class _BindingHandler(FileSystemEventHandler):
    def __init__(self, binding: WatchBinding, matcher: GlobSet, runner: CoalescingRunner):
        super().__init__()
        self.binding = binding
        self.matcher = matcher
        self.runner = runner

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELEVANT:
            return
        paths = [event.src_path, getattr(event, "dest_path", "") or ""]
        if any(p and self.matcher.matches(_as_str(p)) for p in paths):
            log.info("%s %s -> rebuilding %s", event.event_type, _as_str(event.src_path), self.binding.name)
            self.runner.trigger()


def _as_str(p) -> str:
    return p.decode() if isinstance(p, bytes) else str(p)


class ChangeWatcher:
    """Subscribes bindings to file-system events under a project root."""

    def __init__(self, root: Path, executor: Optional[Executor] = None, observer=None):
        self.root = Path(root)
        self._observer = observer or Observer()
        self._executor = executor
        self._owns_executor = executor is None
        self.runners: Dict[str, CoalescingRunner] = {}
        self._bindings: List[WatchBinding] = []
        self._started = False

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="assetpipe-rebuild")
        return self._executor

    def watch(self, binding: WatchBinding) -> CoalescingRunner:
        matcher = GlobSet(binding.watch, root=self.root)
        bases = matcher.bases()
        for base in bases:
            if not base.is_dir():
                raise WatcherSubscriptionFailure(base)
        runner = CoalescingRunner(binding.name, lambda: execute(binding.graph), self._get_executor())
        handler = _BindingHandler(binding, matcher, runner)
        # Nested bases would double-deliver events; keep only the outermost ones.
        outer = [b for b in bases if not any(o != b and o in b.parents for o in bases)]
        for base in outer:
            try:
                self._observer.schedule(handler, str(base), recursive=True)
            except OSError as e:
                raise WatcherSubscriptionFailure(base, e.strerror or str(e)) from e
        self.runners[binding.name] = runner
        self._bindings.append(binding)
        log.info("Watching %s for %s", ", ".join(binding.watch), binding.name)
        return runner

    def start(self) -> None:
        if not self._started:
            self._observer.start()
            self._started = True

    def stop(self, wait: bool = True) -> None:
        """Stop accepting events. In-flight rebuilds are allowed to finish."""
        if self._started:
            self._observer.stop()
            self._observer.join()
            self._started = False
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
