"""Data models shared by the HAR tracker parser."""

import os
import threading
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse


class ConfigurationError(Exception):
    """Raised for setup problems that must stop the run before any session is parsed."""


class Category(str, Enum):
    """Tracker buckets. The value is the suffix of the per-site export file."""
    GHOSTERY = "ghostery"
    SCRIPT = "js"
    SCRIPT_WITH_QUERY = "js-query"
    PLUGIN = "flash"
    PIXEL = "pixels"
    COOKIE = "cookies"
    PARAMETERS = "parameters"


# Order of the 7-element count vector and of the columns in stats_detailed.csv
COUNT_ORDER: Tuple[Category, ...] = (
    Category.GHOSTERY,
    Category.SCRIPT,
    Category.SCRIPT_WITH_QUERY,
    Category.PLUGIN,
    Category.PIXEL,
    Category.COOKIE,
    Category.PARAMETERS,
)


@dataclass(frozen=True)
class Cookie:
    domain: str
    name: str
    value: str
    path: str


@dataclass(frozen=True)
class CapturedEntry:
    """One HTTP exchange of a captured session."""
    url: str
    mimetype: str = ""
    cookies: Tuple[Cookie, ...] = ()

    @property
    def host(self) -> Optional[str]:
        try:
            return urlparse(self.url).hostname
        except ValueError:
            return None

    @property
    def has_query(self) -> bool:
        return "?" in self.url


@dataclass
class CapturedSession:
    site: str
    path: str
    entries: List[CapturedEntry] = field(default_factory=list)

    @property
    def main_host(self) -> Optional[str]:
        return urlparse(f"http://{self.site}").hostname


@dataclass(frozen=True)
class Resolution:
    """Outcome of an organization lookup: either an organization or an error."""
    host: str
    organization: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.organization is not None


@dataclass(frozen=True)
class ImageProbe:
    """Outcome of an image header fetch: dimensions or an error."""
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_pixel(self) -> bool:
        return self.ok and self.width == 1 and self.height == 1


@dataclass(frozen=True)
class Classification:
    """Category assigned to a third-party entry (None when uncounted)."""
    category: Optional[Category] = None
    rows: Tuple[Tuple[str, ...], ...] = ()
    with_query: bool = False
    error: Optional[str] = None


class TrackerHitStats:
    """Run-wide hit counters. Increments are protected by a lock."""

    def __init__(self, tracker_names=()):
        self._lock = threading.Lock()
        self.trackers = Counter({name: 0 for name in tracker_names})
        self.mimetypes_ghostery = Counter()
        self.mimetypes_soa = Counter()

    def record_tracker_hit(self, name: str):
        with self._lock:
            self.trackers[name] += 1

    def record_ghostery_mimetype(self, mimetype: str):
        with self._lock:
            self.mimetypes_ghostery[mimetype] += 1

    def record_soa_mimetype(self, mimetype: str):
        with self._lock:
            self.mimetypes_soa[mimetype] += 1


class SiteResult:
    """Per-site buckets of classified URLs, filled while a session is analyzed."""

    def __init__(self, site: str):
        self.site = site
        self.mimetypes = Counter()
        self.third_party_urls: List[str] = []
        self.buckets: Dict[Category, List[Tuple[str, ...]]] = {category: [] for category in COUNT_ORDER}

    def add(self, category: Category, *fields: str):
        self.buckets[category].append(tuple(fields))

    def record_third_party(self, entry: CapturedEntry):
        self.mimetypes[entry.mimetype] += 1
        self.third_party_urls.append(entry.url)

    def add_classification(self, classification: Classification):
        if classification.category is None:
            return
        for row in classification.rows:
            self.buckets[classification.category].append(row)
        if classification.category is Category.SCRIPT and classification.with_query:
            self.buckets[Category.SCRIPT_WITH_QUERY].extend(classification.rows)

    def counts(self) -> List[int]:
        return [len(self.buckets[category]) for category in COUNT_ORDER]


@dataclass
class SessionOutcome:
    site: str
    path: str
    succeeded: bool
    counts: Optional[List[int]] = None
    error: Optional[str] = None


@dataclass
class RunSummary:
    total: int = 0
    succeeded: int = 0
    failed: List[str] = field(default_factory=list)
    detailed: Dict[str, List[int]] = field(default_factory=dict)
    elapsed: float = 0.0

    def add(self, outcome: SessionOutcome):
        self.total += 1
        if outcome.succeeded:
            self.succeeded += 1
            self.detailed[outcome.site] = list(outcome.counts)
        else:
            self.failed.append(os.path.basename(outcome.path))

    def totals(self) -> List[int]:
        totals = [0] * len(COUNT_ORDER)
        for counts in self.detailed.values():
            for i, count in enumerate(counts):
                totals[i] += count
        return totals

    @property
    def total_trackers(self) -> int:
        return sum(self.totals())
