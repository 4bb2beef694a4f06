from dataclasses import dataclass, field
from typing import Optional

from har_trackers.managers.image_prober import ImageProber
from har_trackers.managers.soa_resolver import SOAResolver
from har_trackers.managers.tracker_database import TrackerMatcher
from har_trackers.models import TrackerHitStats


@dataclass
class AnalysisContext:
    """State shared by every session of a run.

    Owned by the RunAggregator and handed to the SessionAnalyzer. The resolver
    cache and the hit counters are the only parts mutated during a session.
    """
    resolver: SOAResolver
    prober: ImageProber
    stats: TrackerHitStats = field(default_factory=TrackerHitStats)
    matcher: Optional[TrackerMatcher] = None

    @property
    def rules_loaded(self):
        return self.matcher is not None
