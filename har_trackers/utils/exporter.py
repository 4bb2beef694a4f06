import os
import logging

from har_trackers.models import COUNT_ORDER, SiteResult

logger = logging.getLogger(__name__)


def sort_by_count(counter):
    """Items of a counter ordered by count, highest first (ties keep insertion order)."""
    return sorted(counter.items(), key=lambda item: item[1], reverse=True)


def write_rows(path, rows):
    """Write rows (sequences of fields) to a file, one comma-joined line per row, replacing it.

    Fields are written as-is, without CSV quoting.
    """
    with open(path, 'w', encoding='utf-8') as f:
        for row in rows:
            f.write(','.join(str(field) for field in row) + '\n')


class ResultExporter:
    """Writes the per-site CSV files and the run-wide statistics files."""

    def __init__(self, results_dir, logs_dir):
        self.results_dir = results_dir
        self.logs_dir = logs_dir

    def site_file(self, site, kind):
        return os.path.join(self.results_dir, f"{site}_{kind}.csv")

    def _export(self, path, rows, description):
        try:
            write_rows(path, rows)
            return True
        except OSError as e:
            logger.error("Error: cannot export %s: %s", description, e)
            return False

    def export_site(self, result: SiteResult) -> bool:
        """Write every file of a website. Returns False if any file failed."""
        ok = self._export(
            self.site_file(result.site, 'mimetypes'),
            sort_by_count(result.mimetypes),
            f"mimetypes of website {result.site}",
        )
        ok &= self._export(
            self.site_file(result.site, 'urls'),
            ((url,) for url in result.third_party_urls),
            f"URLs of website {result.site}",
        )
        for category in COUNT_ORDER:
            ok &= self._export(
                self.site_file(result.site, category.value),
                result.buckets[category],
                f"data of type {category.value} of website {result.site}",
            )
        return ok

    def write_statistics(self, stats, summary, rules_loaded) -> bool:
        """Write the run-wide statistics in the logs directory."""
        ok = True
        if rules_loaded:
            ok &= self._export(
                os.path.join(self.logs_dir, 'stats_trackers.csv'),
                [(name, count) for name, count in sort_by_count(stats.trackers) if count != 0],
                "the trackers statistics",
            )
            ok &= self._export(
                os.path.join(self.logs_dir, 'stats_mimetypes_ghostery.csv'),
                sort_by_count(stats.mimetypes_ghostery),
                "the mimetypes of the Ghostery trackers",
            )
        ok &= self._export(
            os.path.join(self.logs_dir, 'stats_mimetypes_soa.csv'),
            sort_by_count(stats.mimetypes_soa),
            "the mimetypes of the URLs with a different SOA",
        )
        ok &= self._export(
            os.path.join(self.logs_dir, 'stats_detailed.csv'),
            [[site] + counts for site, counts in sorted(summary.detailed.items())],
            "the detailed statistics of the websites",
        )
        return ok
