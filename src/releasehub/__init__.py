"""ReleaseHub - follow playlist artists and collect new releases from Spotify."""

__version__ = "1.0.0"
