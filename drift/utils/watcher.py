"""Watch a directory and process GPX files as they appear or change."""

import logging
import os
import threading

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import DriftError
from .sync import GPX_EXTENSION, has_extension

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 200

WATCH_EVENTS = ("ready", "processed", "error")


def _file_signature(path):
    try:
        stat = os.stat(path)
    except OSError:
        return None
    return (stat.st_size, stat.st_mtime_ns)


class _TrackFileEventHandler(FileSystemEventHandler):
    """Forward file create/modify/move events to the controller."""

    def __init__(self, controller):
        super().__init__()
        self.controller = controller

    def on_created(self, event):
        if not event.is_directory:
            self.controller.notify(event.src_path)

    def on_modified(self, event):
        if not event.is_directory:
            self.controller.notify(event.src_path)

    def on_moved(self, event):
        if not event.is_directory:
            self.controller.notify(event.dest_path)


class WatchController:
    """
    Debounced file watcher driving a per-file processor.

    Each matching path gets its own timer. Every new event for that path
    restarts the timer, and when it fires the file's size and mtime must be
    unchanged since the last event, otherwise the timer is armed again. Only
    then is ``processor(path, output_dir)`` called, on the timer's thread,
    so different paths can be processed concurrently while a single path has
    at most one call outstanding.

    Listeners are registered with ``on``:
      - ``ready()`` once the observer is running
      - ``processed(path, result)`` after a successful call
      - ``error(path, exc)`` when the processor raises or reports failure
    """

    def __init__(self, input_dir, output_dir, processor, debounce_ms=DEFAULT_DEBOUNCE_MS,
                 extension=GPX_EXTENSION, observer_factory=Observer):
        self.input_dir = os.path.abspath(input_dir)
        self.output_dir = output_dir
        self.processor = processor
        self.debounce_seconds = max(0, debounce_ms) / 1000.0
        self.extension = extension

        self._observer_factory = observer_factory
        self._observer = None
        self._lock = threading.Lock()
        self._start_lock = threading.Lock()
        self._timers = {}
        self._signatures = {}
        self._in_flight = set()
        self._listeners = {name: [] for name in WATCH_EVENTS}
        self._started = False
        self._stopped = False

    def on(self, event, callback):
        """Register a listener for 'ready', 'processed' or 'error'."""
        if event not in self._listeners:
            raise ValueError(f"Unknown watch event: {event}")
        self._listeners[event].append(callback)
        return self

    @property
    def in_flight(self):
        with self._lock:
            return set(self._in_flight)

    @property
    def pending(self):
        with self._lock:
            return set(self._timers)

    def start(self):
        """
        Start observing the input directory. Existing files are left alone.

        A stopped controller stays stopped. If the observer cannot be
        scheduled (for example the directory is missing) the error
        propagates and ``start`` may be called again.
        """
        with self._start_lock:
            with self._lock:
                if self._started or self._stopped:
                    return self

            observer = self._observer_factory()
            observer.schedule(_TrackFileEventHandler(self), self.input_dir, recursive=True)
            observer.start()

            with self._lock:
                self._observer = observer
                self._started = True

        logger.info("Watching %s for %s files", self.input_dir, self.extension)
        self._emit("ready")
        return self

    def stop(self):
        """Stop observing and cancel pending timers. Safe to call more than once."""
        with self._start_lock, self._lock:
            if self._stopped:
                return
            self._stopped = True
            observer = self._observer
            timers = list(self._timers.values())
            self._timers.clear()
            self._signatures.clear()

        for timer in timers:
            timer.cancel()

        if observer is not None:
            observer.stop()
            observer.join()
        logger.info("Stopped watching %s", self.input_dir)

    def notify(self, path):
        """Record activity on a path and (re)start its debounce timer."""
        path = os.fsdecode(path)
        if not has_extension(path, self.extension):
            return

        with self._lock:
            if self._stopped:
                return
            self._signatures[path] = _file_signature(path)
            self._arm_timer(path)

    def _arm_timer(self, path):
        existing = self._timers.get(path)
        if existing is not None:
            existing.cancel()
        timer = threading.Timer(self.debounce_seconds, self._on_timer, args=(path,))
        timer.daemon = True
        self._timers[path] = timer
        timer.start()

    def _on_timer(self, path):
        with self._lock:
            if self._stopped or self._timers.get(path) is not threading.current_thread():
                return

            signature = _file_signature(path)
            if signature is None:
                # Gone before it settled.
                self._timers.pop(path, None)
                self._signatures.pop(path, None)
                return
            if signature != self._signatures.get(path):
                self._signatures[path] = signature
                self._arm_timer(path)
                return

            self._timers.pop(path, None)
            self._signatures.pop(path, None)
            if path in self._in_flight:
                logger.debug("Skipping %s, already being processed", path)
                return
            self._in_flight.add(path)

        self._process(path)

    def _process(self, path):
        try:
            result = self.processor(path, self.output_dir)
        except Exception as exc:
            logger.warning("Processing %s failed: %s", path, exc)
            self._emit("error", path, exc)
        else:
            if result.get('success'):
                self._emit("processed", path, result)
            else:
                error = DriftError(result.get('error') or 'Unknown error')
                logger.warning("Processing %s failed: %s", path, error)
                self._emit("error", path, error)
        finally:
            with self._lock:
                self._in_flight.discard(path)

    def _emit(self, event, *args):
        if self._stopped:
            return
        for callback in list(self._listeners[event]):
            try:
                callback(*args)
            except Exception:
                logger.exception("Watch listener for %r raised", event)


def create_watcher(input_dir, output_dir, processor, debounce_ms=DEFAULT_DEBOUNCE_MS, **listeners):
    """
    Build and start a WatchController.

    Keyword arguments named ``on_ready``, ``on_processed`` and ``on_error``
    are registered as listeners before the observer starts, so ``ready`` is
    never missed.
    """
    controller = WatchController(input_dir, output_dir, processor, debounce_ms=debounce_ms)
    for name, callback in listeners.items():
        if not name.startswith("on_"):
            raise TypeError(f"Unexpected keyword argument: {name}")
        controller.on(name[3:], callback)
    return controller.start()
