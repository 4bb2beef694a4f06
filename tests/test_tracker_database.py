import os
import sys
import json
import shutil
import tempfile
import unittest

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from har_trackers.managers.tracker_database import TrackerDatabase, TrackerMatcher
from har_trackers.models import ConfigurationError, TrackerHitStats

BUGS = {
    "bugsVersion": 412,
    "bugs": [
        {"pattern": "google-analytics\\.com\\/(urchin\\.js|ga\\.js)", "name": "Google Analytics"},
        {"pattern": "doubleclick\\.net\\/", "name": "DoubleClick, Inc"},
        {"pattern": "\\/pixel\\.gif", "name": "Generic Pixel"},
    ],
}


class TestTrackerDatabaseLoading(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def _write(self, name, content):
        path = os.path.join(self.temp_dir, name)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        return path

    def test_load_bugs_file(self):
        path = self._write('bugs.json', json.dumps(BUGS))

        database = TrackerDatabase.load(path)

        self.assertEqual(database.version, 412)
        self.assertEqual(len(database), 3)
        # Backslashes are removed from patterns, commas from names
        self.assertIn("google-analytics.com/(urchin.js|ga.js)", database.rules)
        self.assertEqual(database.rules["doubleclick.net/"], "DoubleClick  Inc")

    def test_missing_file(self):
        with self.assertRaises(ConfigurationError):
            TrackerDatabase.load(os.path.join(self.temp_dir, 'missing.json'))

    def test_not_a_bugs_file(self):
        path = self._write('other.json', json.dumps({"trackers": []}))
        with self.assertRaises(ConfigurationError):
            TrackerDatabase.load(path)

    def test_invalid_json(self):
        path = self._write('broken.json', '{"bugs": [')
        with self.assertRaises(ConfigurationError):
            TrackerDatabase.load(path)

    def test_invalid_pattern_is_skipped(self):
        database = TrackerDatabase({"(unclosed": "Broken", "tracker\\.com": "Tracker"})
        self.assertEqual(len(database), 1)


class TestTrackerMatcher(unittest.TestCase):

    def setUp(self):
        self.database = TrackerDatabase({
            "google-analytics.com/ga.js": "Google Analytics",
            "doubleclick.net/": "DoubleClick",
            "/pixel.gif": "Generic Pixel",
        })
        self.stats = TrackerHitStats(self.database.tracker_names)
        self.matcher = TrackerMatcher(self.database, self.stats)

    def test_match_anywhere_in_url(self):
        name = self.matcher.matches_known_tracker("https://www.google-analytics.com/ga.js?v=2")
        self.assertEqual(name, "Google Analytics")

    def test_no_match(self):
        self.assertIsNone(self.matcher.matches_known_tracker("https://example.com/app.js"))
        self.assertEqual(sum(self.stats.trackers.values()), 0)

    def test_one_hit_per_matched_url(self):
        # Matches two patterns, only one tracker is counted
        self.matcher.matches_known_tracker("https://ad.doubleclick.net/pixel.gif")
        self.assertEqual(sum(self.stats.trackers.values()), 1)

    def test_hits_accumulate(self):
        for _ in range(3):
            self.matcher.matches_known_tracker("https://stats.doubleclick.net/x")
        self.assertEqual(self.stats.trackers["DoubleClick"], 3)
        self.assertEqual(self.stats.trackers["Google Analytics"], 0)


if __name__ == "__main__":
    unittest.main()
