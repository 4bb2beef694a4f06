import threading
import time
import logging

logger = logging.getLogger(__name__)


def format_elapsed(seconds):
    """Format a duration the way the run summary shows it: "1 hr and 5 min.", "5 min." or "42 sec."."""
    seconds = int(seconds)
    hours, minutes = seconds // 3600, seconds // 60
    if hours > 0:
        return f"{hours} hr and {minutes % 60} min."
    if minutes > 0:
        return f"{minutes} min."
    return f"{seconds} sec."


class ProgressCounter:
    """Number of analyzed sessions, written by the run and read by the reporter."""

    def __init__(self, total=0):
        self._lock = threading.Lock()
        self._analyzed = 0
        self._total = total

    def set_total(self, total):
        with self._lock:
            self._total = total

    def increment(self):
        with self._lock:
            self._analyzed += 1

    def snapshot(self):
        """Return (analyzed, total) read together."""
        with self._lock:
            return self._analyzed, self._total


class ProgressReporter:
    """Logs the progress of the run at a fixed interval from a daemon thread."""

    def __init__(self, counter, interval, start_time=None):
        self.counter = counter
        self.interval = interval
        self.start_time = start_time if start_time is not None else time.monotonic()
        self._stop = threading.Event()
        self._thread = None

    def status_line(self):
        analyzed, total = self.counter.snapshot()
        percentage = 100 * analyzed / total if total else 0.0
        elapsed = format_elapsed(time.monotonic() - self.start_time)
        return (f"Elapsed time: {elapsed} {analyzed} files analyzed out of {total} files "
                f"({percentage:.1f}%).")

    def _run(self):
        while not self._stop.wait(self.interval):
            logger.info(self.status_line())

    def start(self):
        if self._thread is None or not self._thread.is_alive():
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name='progress-reporter')
            self._thread.daemon = True
            self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1)
            self._thread = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
