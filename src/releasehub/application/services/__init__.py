"""Application services."""

from releasehub.application.services.followed_artists_service import FollowedArtistsService
from releasehub.application.services.new_releases_service import NewReleasesService
from releasehub.application.services.playlist_analysis_service import PlaylistAnalysisService
from releasehub.application.services.playlist_service import PlaylistService
from releasehub.application.services.related_artists_service import RelatedArtistsService
from releasehub.application.services.release_hub_service import ReleaseHubService
from releasehub.application.services.scan_orchestrator import ParallelScanOrchestrator

__all__ = [
    "FollowedArtistsService",
    "NewReleasesService",
    "ParallelScanOrchestrator",
    "PlaylistAnalysisService",
    "PlaylistService",
    "RelatedArtistsService",
    "ReleaseHubService",
]
