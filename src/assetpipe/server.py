"""Development server: the dev tree served by livereload.

livereload serves the files, injects its client script into HTML pages and
owns the websocket that `notify_reloadable()` pushes to. Its own file polling
is switched off: reloads only follow completed rebuilds.
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Optional

from livereload import Server
from livereload.handlers import LiveReloadHandler
from livereload.watcher import Watcher
from tornado.ioloop import IOLoop

from .config import ServerSettings
from .errors import ServerFailure
from .logging import get_logger


log = get_logger("assetpipe.server")

STARTUP_TIMEOUT = 10.0


class SignalOnlyWatcher(Watcher):
    """Never reports changes; the change watcher decides when to reload."""

    def examine(self):
        return None, None


class DevServer:
    def __init__(self, root: Path, settings: Optional[ServerSettings] = None):
        self.root = Path(root)
        self.settings = settings or ServerSettings()
        self._loop: Optional[IOLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._error: Optional[BaseException] = None

    @property
    def url(self) -> str:
        return f"http://{self.settings.host}:{self.settings.port}"

    @property
    def running(self) -> bool:
        return self._loop is not None

    def _serve_forever(self, live: Server) -> None:
        asyncio.set_event_loop(asyncio.new_event_loop())
        loop = IOLoop.current()
        # Runs once the loop is up, i.e. after livereload bound its port.
        loop.add_callback(self._started, loop)
        try:
            live.serve(
                port=self.settings.port,
                host=self.settings.host,
                root=str(self.root),
                debug=False,
                open_url_delay=None,
                default_filename="index.html",
            )
        except Exception as e:  # noqa: BLE001
            self._error = e
            self._ready.set()
        finally:
            # Releases the listening socket.
            loop.close(all_fds=True)

    def _started(self, loop: IOLoop) -> None:
        self._loop = loop
        self._ready.set()

    def serve(self) -> None:
        """Start serving in a background thread; raises ServerFailure if it cannot."""
        self.root.mkdir(parents=True, exist_ok=True)
        live = Server(watcher=SignalOnlyWatcher())
        self._ready.clear()
        self._error = None
        self._thread = threading.Thread(
            target=self._serve_forever, args=(live,), name="assetpipe-server", daemon=True
        )
        self._thread.start()
        if not self._ready.wait(STARTUP_TIMEOUT):
            raise ServerFailure(self.url, "did not start in time")
        if self._error is not None:
            err = self._error
            self._thread.join(timeout=1)
            self._thread = None
            raise ServerFailure(self.url, getattr(err, "strerror", None) or str(err)) from err
        log.info("Serving %s at %s", self.root, self.url)

    def notify_reloadable(self) -> None:
        """Ask every connected browser to reload. Fire-and-forget."""
        loop = self._loop
        if loop is None:
            return
        # livereload's waiters belong to the server's loop thread
        loop.add_callback(LiveReloadHandler.reload_waiters, "*")
        log.info("Reload signalled to %d client(s)", len(LiveReloadHandler.waiters))

    def shutdown(self) -> None:
        loop, self._loop = self._loop, None
        if loop is not None:
            loop.add_callback(loop.stop)
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
