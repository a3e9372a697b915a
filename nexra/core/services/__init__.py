"""Service layer implementing the dashboard orchestration.

Services connect ports (interfaces) with adapters (implementations),
providing high-level operations to the presentation layer.
"""

from nexra.core.services.analysis_job_controller import AnalysisJobController
from nexra.core.services.cache_manager import CacheKeys, CacheManager, CacheTier, NavigationTiming
from nexra.core.services.dashboard_service import DashboardService
from nexra.core.services.identity_resolver import IdentityResolver, parse_riot_id
from nexra.core.services.live_status_poller import LiveStatusPoller
from nexra.core.services.match_feed_loader import FeedLoadResult, FetchStrategy, MatchFeedLoader

__all__ = [
    "AnalysisJobController",
    "CacheKeys",
    "CacheManager",
    "CacheTier",
    "DashboardService",
    "FeedLoadResult",
    "FetchStrategy",
    "IdentityResolver",
    "LiveStatusPoller",
    "MatchFeedLoader",
    "NavigationTiming",
    "parse_riot_id",
]
