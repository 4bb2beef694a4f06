import logging
from typing import Optional

from har_trackers.analyzers.classifier import classify
from har_trackers.analyzers.context import AnalysisContext
from har_trackers.models import COUNT_ORDER, CapturedEntry, Category, SessionOutcome, SiteResult
from har_trackers.utils.exporter import ResultExporter
from har_trackers.utils.har_reader import HarParseError, load_session, site_from_filename

logger = logging.getLogger(__name__)

COUNT_LABELS = {
    Category.GHOSTERY: "Number of Ghostery trackers",
    Category.SCRIPT: "Number of JavaScript",
    Category.SCRIPT_WITH_QUERY: "Number of JavaScript with query",
    Category.PLUGIN: "Number of Flash",
    Category.PIXEL: "Number of tracking pixels",
    Category.COOKIE: "Number of cookies",
    Category.PARAMETERS: "Number of other URLs with parameters",
}


class SessionAnalyzer:
    """
    Finds the third-party trackers of one website from its HAR file.

    For every website (the name of the file):
      => get the SOA of the website. If it fails, the file is skipped.
    For every URL of the file:
      => check it against the Ghostery regular expressions, if loaded
      => otherwise get the SOA of the URL
      => if the SOAs differ, classify the URL
    """

    def __init__(self, context: AnalysisContext, exporter: Optional[ResultExporter] = None,
                 show_trackers=False):
        self.context = context
        self.exporter = exporter
        self.show_trackers = show_trackers

    def _failed(self, site, path, error):
        logger.error("Error (skip website %s): %s", site, error)
        return SessionOutcome(site=site, path=path, succeeded=False, error=error)

    def analyze(self, path) -> SessionOutcome:
        site, _ = site_from_filename(path)
        logger.info("Website: %s", site)

        try:
            session = load_session(path, site)
        except HarParseError as e:
            return self._failed(site, path, str(e))

        main_host = session.main_host
        if not main_host:
            return self._failed(site, path, "cannot get the website's hostname")

        main = self.context.resolver.resolve(main_host)
        if not main.ok:
            return self._failed(site, path, f"cannot get the website's SOA: {main.error}")

        logger.info(" > Number of entries to analyze: %d.", len(session.entries))
        result = SiteResult(site)
        for entry in session.entries:
            self.process_entry(entry, main.organization, result)

        return self.finalize(result, path)

    def process_entry(self, entry: CapturedEntry, main_organization, result: SiteResult):
        """Analyze one request of the website and record it in the result."""
        context = self.context

        if context.matcher is not None:
            tracker = context.matcher.matches_known_tracker(entry.url)
            # Names may be empty strings
            if tracker is not None:
                result.add(Category.GHOSTERY, entry.url)
                context.stats.record_ghostery_mimetype(entry.mimetype)
                return

        host = entry.host
        if not host:
            logger.warning("Error (skip URL): no hostname in %s", entry.url)
            return

        resolution = context.resolver.resolve(host)
        if not resolution.ok:
            logger.warning("Error (skip URL): %s", resolution.error)
            return

        if resolution.organization == main_organization:
            return

        context.stats.record_soa_mimetype(entry.mimetype)
        result.record_third_party(entry)

        classification = classify(entry, context.prober)
        if classification.error:
            logger.warning("%s: %s", classification.error, entry.url)
        result.add_classification(classification)

    def finalize(self, result: SiteResult, path) -> SessionOutcome:
        if self.exporter is not None:
            self.exporter.export_site(result)

        counts = result.counts()
        if self.show_trackers:
            for category, count in zip(COUNT_ORDER, counts):
                logger.info("%s: %d", COUNT_LABELS[category], count)

        return SessionOutcome(site=result.site, path=path, succeeded=True, counts=counts)
