"""Convert raw Spotify API JSON into DTOs.

Hey future me - Spotify returns "simplified" objects in some places (playlist track artists,
album.artists) and "full" objects in others (GET /artists). Simplified ones have no images,
popularity or genres, so every field except id/name is optional here.
"""

from typing import Any

from releasehub.domain.dtos import ArtistDTO, ImageDTO, ReleaseDTO, TrackDTO


def convert_images(raw: list[dict[str, Any]] | None) -> list[ImageDTO]:
    """Convert Spotify image objects, skipping entries without a URL."""
    return [
        ImageDTO(url=img["url"], height=img.get("height"), width=img.get("width"))
        for img in (raw or [])
        if img and img.get("url")
    ]


def convert_artist(data: dict[str, Any]) -> ArtistDTO:
    """Convert a simplified or full Spotify artist object."""
    return ArtistDTO(
        id=data["id"],
        name=data.get("name") or "Unknown Artist",
        images=convert_images(data.get("images")),
        external_urls=dict(data.get("external_urls") or {}),
        popularity=data.get("popularity"),
        genres=list(data.get("genres") or []),
    )


def convert_release(data: dict[str, Any]) -> ReleaseDTO:
    """Convert a Spotify (simplified) album object into a release."""
    artists = [convert_artist(a) for a in data.get("artists") or [] if a and a.get("id")]
    return ReleaseDTO(
        id=data["id"],
        name=data.get("name") or "",
        album_type=data.get("album_type") or "album",
        release_date=data.get("release_date") or "",
        release_date_precision=data.get("release_date_precision") or "day",
        artist_name=artists[0].name if artists else "Unknown Artist",
        artists=artists,
        total_tracks=int(data.get("total_tracks") or 0),
        images=convert_images(data.get("images")),
        external_urls=dict(data.get("external_urls") or {}),
        uri=data.get("uri"),
    )


# Yo, album tracks from /albums?ids= are "simplified" tracks without an album object,
# so the caller passes the album it came from. Full tracks (/tracks?ids=) carry their own.
def convert_track(data: dict[str, Any], album: dict[str, Any] | None = None) -> TrackDTO:
    """Convert a Spotify track object."""
    album = album or data.get("album") or {}
    return TrackDTO(
        id=data["id"],
        name=data.get("name") or "",
        uri=data.get("uri") or f"spotify:track:{data['id']}",
        artists=[convert_artist(a) for a in data.get("artists") or [] if a and a.get("id")],
        album_id=album.get("id"),
        album_name=album.get("name"),
        duration_ms=int(data.get("duration_ms") or 0),
        preview_url=data.get("preview_url"),
        external_urls=dict(data.get("external_urls") or {}),
    )


__all__ = ["convert_artist", "convert_images", "convert_release", "convert_track"]
