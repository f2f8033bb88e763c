"""
Data Transfer Objects for the ReleaseHub API layer.

Hey future me - these DTOs are plain records, NO class hierarchy! An UnfollowedArtist is
not "an Artist with extra stuff", it CONTAINS an ArtistDTO plus its frequency. Keeps
copying and caching trivial (copy.deepcopy just works) and nothing leaks between types.

Flow: Spotify JSON → spotify_converters → DTO → cache / services → caller
"""

from dataclasses import dataclass, field
from typing import Any

from releasehub.domain.exceptions import ValidationError


@dataclass
class ImageDTO:
    """Artwork reference. Spotify orders images largest-first."""

    url: str
    height: int | None = None
    width: int | None = None


# Hey future me - an artist often starts "thin" (id + name + link from a playlist track) and
# gets hydrated with images/popularity later via GET /artists?ids=. Identity is the id only,
# so hydration simply replaces the cached record.
@dataclass
class ArtistDTO:
    """Spotify artist."""

    id: str
    name: str
    images: list[ImageDTO] = field(default_factory=list)
    external_urls: dict[str, str] = field(default_factory=dict)
    popularity: int | None = None  # Spotify 0-100, only on full artist objects
    genres: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate essential fields."""
        if not self.id:
            raise ValidationError("Artist id cannot be empty")

    @property
    def spotify_url(self) -> str | None:
        """Link to the artist's Spotify profile."""
        return self.external_urls.get("spotify")


@dataclass
class UnfollowedArtistDTO:
    """An artist from an analysed playlist that the user doesn't follow yet."""

    artist: ArtistDTO
    frequency: int  # number of playlist tracks featuring this artist


@dataclass
class ReleaseDTO:
    """Album or single from a followed artist.

    Hey future me - release_date_precision matters! Only "day" precision releases can be
    placed on a timeline; "month"/"year" ones never pass a recency filter.
    """

    id: str
    name: str
    album_type: str  # "album", "single", "compilation"
    release_date: str  # "YYYY-MM-DD", "YYYY-MM" or "YYYY"
    release_date_precision: str  # "day", "month", "year"
    artist_name: str  # denormalized primary artist name for display
    artists: list[ArtistDTO] = field(default_factory=list)
    total_tracks: int = 0
    images: list[ImageDTO] = field(default_factory=list)
    external_urls: dict[str, str] = field(default_factory=dict)
    uri: str | None = None


@dataclass
class TrackDTO:
    """Spotify track. preview_url is only present on full track objects."""

    id: str
    name: str
    uri: str
    artists: list[ArtistDTO] = field(default_factory=list)
    album_id: str | None = None
    album_name: str | None = None
    duration_ms: int = 0
    preview_url: str | None = None
    external_urls: dict[str, str] = field(default_factory=dict)


@dataclass
class PlaylistAnalysisDTO:
    """Result of analysing one playlist."""

    playlist_id: str
    playlist_name: str
    playlist_owner: str
    unfollowed_artists: list[UnfollowedArtistDTO] = field(default_factory=list)


@dataclass
class FollowResult:
    """Outcome of a bulk follow. followed_count + failed_count == number of input IDs."""

    followed_count: int
    failed_count: int
    failed_artist_ids: list[str] = field(default_factory=list)


@dataclass
class ScanResult:
    """Recent releases from followed artists, newest first."""

    releases: list[ReleaseDTO]
    total_artists_checked: int
    failed_artist_ids: list[str] = field(default_factory=list)


@dataclass
class CreatedPlaylistDTO:
    """A playlist we just created and filled."""

    playlist_id: str
    playlist_url: str | None
    tracks_added: int


@dataclass
class AlbumTracksResult:
    """Full tracks for a set of albums. Albums that failed are listed, not raised."""

    tracks: list[TrackDTO]
    failed_album_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProgressUpdate:
    """Observational progress event, emitted and never stored."""

    current: int
    total: int
    message: str


# Hey future me - NEVER put tokens in a repr/log line! repr=False keeps them out of
# tracebacks and debug logs. expires_at is a unix timestamp (seconds).
@dataclass
class Credential:
    """OAuth token pair owned by the token manager."""

    access_token: str = field(repr=False)
    refresh_token: str | None = field(repr=False)
    expires_at: float

    def expires_within(self, now: float, margin_seconds: float = 0.0) -> bool:
        """Check if the access token is expired (or will be within margin)."""
        return now >= self.expires_at - margin_seconds

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the credential store."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Credential":
        """Deserialize from the credential store."""
        if not data.get("access_token"):
            raise ValidationError("Stored credential has no access token")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=float(data.get("expires_at", 0)),
        )


__all__ = [
    "AlbumTracksResult",
    "ArtistDTO",
    "CreatedPlaylistDTO",
    "Credential",
    "FollowResult",
    "ImageDTO",
    "PlaylistAnalysisDTO",
    "ProgressUpdate",
    "ReleaseDTO",
    "ScanResult",
    "TrackDTO",
    "UnfollowedArtistDTO",
]
