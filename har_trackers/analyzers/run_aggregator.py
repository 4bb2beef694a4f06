import os
import time
import logging
from typing import List

from tqdm import tqdm

from har_trackers.analyzers.context import AnalysisContext
from har_trackers.analyzers.session_analyzer import SessionAnalyzer
from har_trackers.config import HAR_EXTENSION
from har_trackers.models import ConfigurationError, RunSummary, SessionOutcome
from har_trackers.utils.exporter import ResultExporter
from har_trackers.utils.har_reader import site_from_filename
from har_trackers.utils.progress import ProgressCounter, ProgressReporter, format_elapsed

logger = logging.getLogger(__name__)


def find_har_files(directory) -> List[str]:
    """
    Find the HAR file to analyze for every website of a directory.

    When a website was captured several times (example.com-1.har,
    example.com-2.har, ...) only the highest attempt is kept; an unsuffixed
    file is attempt 0. The list is sorted by website name.
    """
    if not os.path.isdir(directory):
        raise ConfigurationError(f"the directory {directory} does not exist")

    latest = {}
    for name in os.listdir(directory):
        path = os.path.join(directory, name)
        if not name.endswith(HAR_EXTENSION) or not os.path.isfile(path):
            continue
        site, attempt = site_from_filename(name)
        if site not in latest or attempt > latest[site][0]:
            latest[site] = (attempt, path)

    return [latest[site][1] for site in sorted(latest)]


def _plural(count, word):
    if count <= 1:
        return f"{count} {word}"
    suffix = 'es' if word.endswith('ss') else 's'
    return f"{count} {word}{suffix}"


class RunAggregator:
    """Analyzes every website of a directory and accumulates the run statistics."""

    def __init__(self, directory, context: AnalysisContext, exporter: ResultExporter = None,
                 show_trackers=False, progress_interval=300, debug=False):
        self.directory = directory
        self.context = context
        self.exporter = exporter
        self.analyzer = SessionAnalyzer(context, exporter, show_trackers=show_trackers)
        self.progress = ProgressCounter()
        self.progress_interval = progress_interval
        self.debug = debug
        self.summary = RunSummary()

    def _analyze(self, path) -> SessionOutcome:
        try:
            return self.analyzer.analyze(path)
        except Exception as e:
            # Any other problem fails this file only
            if self.debug:
                logger.exception("Unexpected error while parsing %s", path)
            site, _ = site_from_filename(path)
            logger.error("Error: cannot parse the file %s: %s", os.path.basename(path), e)
            return SessionOutcome(site=site, path=path, succeeded=False, error=str(e))

    def run(self, paths=None) -> RunSummary:
        """Analyze the sessions (all HAR files of the directory by default)."""
        start_time = time.monotonic()
        if paths is None:
            paths = find_har_files(self.directory)
        if not paths:
            raise ConfigurationError(f"no HAR file found in {self.directory}")

        if len(paths) == 1:
            logger.info("Info: only a single file to parse")
        else:
            logger.info("Info: %d files to parse", len(paths))

        self.progress.set_total(len(paths))
        reporter = ProgressReporter(self.progress, self.progress_interval, start_time)
        try:
            with reporter:
                for path in tqdm(paths, desc="Parsing HAR files", unit="file", disable=None):
                    logger.info("Parsing %s...", os.path.basename(path))
                    self.summary.add(self._analyze(path))
                    self.progress.increment()
            logger.info("Info: the parsing of the files is done!")
            logger.info("Total number of saved elements: %d", self.summary.total_trackers)
        finally:
            # Flush what was computed, even when interrupted
            self.summary.elapsed = time.monotonic() - start_time
            if self.exporter is not None:
                self.exporter.write_statistics(self.context.stats, self.summary, self.context.rules_loaded)
        return self.summary

    def log_summary(self):
        summary = self.summary
        failed = len(summary.failed)
        lines = [
            "",
            "----- Summary -----",
            f"> {_plural(summary.total, 'file')}",
            _plural(failed, 'fail'),
            _plural(summary.succeeded, 'success'),
        ]
        if summary.failed:
            lines += ["", "----- Files failed -----"] + summary.failed
        lines.append(f"Total time: {format_elapsed(summary.elapsed)}")
        for line in lines:
            logger.info(line)
