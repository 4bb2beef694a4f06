import json
import re
import logging
from typing import Dict, Optional

from har_trackers.models import ConfigurationError, TrackerHitStats

logger = logging.getLogger(__name__)


class TrackerDatabase:
    """
    Regular expressions of known trackers, loaded from a Ghostery "bugs" file.

    The file looks like::

        {"bugsVersion": 412,
         "bugs": [{"pattern": "google-analytics\\\\.com\\\\/ga\\\\.js", "name": "Google Analytics"}, ...]}

    Backslashes are removed from the patterns and commas from the names, so
    that names can be written in CSV rows as-is.
    """

    def __init__(self, rules: Dict[str, str], version=None):
        self.rules = dict(rules)
        self.version = version
        self._compiled = []
        for pattern, name in self.rules.items():
            try:
                self._compiled.append((re.compile(pattern), name))
            except re.error as e:
                logger.warning("Skipping tracker pattern %r (%s): %s", pattern, name, e)

    def __len__(self):
        return len(self._compiled)

    @property
    def tracker_names(self):
        return sorted(set(self.rules.values()))

    @classmethod
    def load(cls, path):
        """Load the database from a Ghostery JSON file.

        Raises:
            ConfigurationError: the file is missing or is not a bugs document
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                document = json.load(f)
            rules = {}
            for bug in document['bugs']:
                pattern = str(bug['pattern']).replace('\\', '')
                name = str(bug['name']).replace(',', ' ')
                rules[pattern] = name
            version = document.get('bugsVersion')
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise ConfigurationError(f"the list of trackers could not be retrieved from {path}: {e}") from e

        database = cls(rules, version)
        logger.info("Version of bugs: %s", database.version)
        logger.info("Number of elements: %d", len(database))
        return database

    def find(self, url) -> Optional[str]:
        """Return the name of the first tracker whose pattern is found in the URL."""
        for pattern, name in self._compiled:
            if pattern.search(url):
                return name
        return None


class TrackerMatcher:
    """Matches URLs against a TrackerDatabase and counts the hits per tracker."""

    def __init__(self, database: TrackerDatabase, stats: TrackerHitStats):
        self.database = database
        self.stats = stats

    def matches_known_tracker(self, url) -> Optional[str]:
        name = self.database.find(url)
        if name is not None:
            self.stats.record_tracker_hit(name)
        return name
