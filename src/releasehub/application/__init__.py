"""Application layer - caches and services built on the Spotify client."""
