"""Save watcher -- pushes script files to the database as they are saved.

Editors save in different ways (write in place, or write a temp file and
rename it over the original), so modify, create and move events are all
treated as a save of the destination path. A push runs once a path has been
quiet for the debounce window, so it always reads the file's final content.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from scriptsync.errors import NotFoundError, SyncError
from scriptsync.lib.artifacts.models import PushOutcome
from scriptsync.lib.artifacts.push import IGNORED, push
from scriptsync.lib.artifacts.workspace import Workspace

logger = logging.getLogger("scriptsync.watcher")

DEBOUNCE_SECONDS = 1.0

OutcomeCallback = Callable[[PushOutcome], None]
ErrorCallback = Callable[[Path, Exception], None]


class SaveHandler(FileSystemEventHandler):
    """Turns filesystem events under a workspace into push calls."""

    def __init__(
        self,
        workspace: Workspace,
        *,
        on_outcome: OutcomeCallback | None = None,
        on_error: ErrorCallback | None = None,
        debounce: float = DEBOUNCE_SECONDS,
    ) -> None:
        self._workspace = workspace
        self._on_outcome = on_outcome
        self._on_error = on_error
        self._debounce = debounce
        self._pending: dict[Path, threading.Timer] = {}
        self._pending_lock = threading.Lock()
        self._push_lock = threading.Lock()

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.schedule(Path(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.schedule(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.schedule(Path(event.dest_path))

    def schedule(self, path: Path) -> None:
        """Push ``path`` after it has been quiet for the debounce window.

        Every new event for the same path restarts its timer.
        """
        if not path.name.endswith(self._workspace.extension):
            return
        if self._debounce <= 0:
            self.handle_save(path)
            return

        timer = threading.Timer(self._debounce, self._fire, args=(path,))
        timer.daemon = True
        with self._pending_lock:
            previous = self._pending.pop(path, None)
            if previous is not None:
                previous.cancel()
                logger.debug("Save of %s superseded by a later event", path)
            self._pending[path] = timer
        timer.start()

    def _fire(self, path: Path) -> None:
        with self._pending_lock:
            if self._pending.get(path) is not threading.current_thread():
                return
            del self._pending[path]
        self.handle_save(path)

    def flush(self) -> None:
        """Push every pending save now instead of waiting for its timer."""
        with self._pending_lock:
            pending = list(self._pending.items())
            self._pending.clear()
        for path, timer in pending:
            timer.cancel()
            self.handle_save(path)

    @property
    def pending(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def handle_save(self, path: Path) -> PushOutcome | None:
        """Push one saved file. Errors are reported, never raised."""
        if not path.name.endswith(self._workspace.extension) or not path.is_file():
            return None

        with self._push_lock:
            try:
                outcome = push(self._workspace, path)
            except NotFoundError as exc:
                logger.error("Error inserting script: %s", exc)
                self._report_error(path, exc)
                return None
            except (SyncError, OSError) as exc:
                logger.error("Error pushing %s: %s", path, exc)
                self._report_error(path, exc)
                return None

        if outcome.action != IGNORED and self._on_outcome is not None:
            self._on_outcome(outcome)
        return outcome

    def _report_error(self, path: Path, exc: Exception) -> None:
        if self._on_error is not None:
            self._on_error(path, exc)


def watch(
    workspace: Workspace,
    *,
    on_outcome: OutcomeCallback | None = None,
    on_error: ErrorCallback | None = None,
    stop: threading.Event | None = None,
) -> None:
    """Watch the workspace until ``stop`` is set or the process is interrupted.

    Saves still waiting out their debounce window are pushed before returning.
    """
    handler = SaveHandler(workspace, on_outcome=on_outcome, on_error=on_error)
    observer = Observer()
    observer.schedule(handler, str(workspace.root), recursive=True)
    observer.start()
    logger.info("Watching %s for saved %s files", workspace.root, workspace.extension)

    stop = stop or threading.Event()
    try:
        while not stop.wait(0.5):
            pass
    except KeyboardInterrupt:
        logger.info("Stopping watcher")
    finally:
        observer.stop()
        observer.join()
        handler.flush()
