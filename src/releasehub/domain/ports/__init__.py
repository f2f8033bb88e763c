"""Domain ports (interfaces) for dependency inversion.

Hey future me - everything the API layer needs from the outside world comes in through
these ports: time, token issuing, credential persistence and progress reporting. NO module
globals! Tests swap in a fake clock and fake stores, production wires the real ones in
ReleaseHubService.create().
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from releasehub.domain.dtos import Credential, ProgressUpdate

# Hey future me - progress sinks are fire-and-forget. They return nothing and must not
# block; if one raises we log it and keep going (see application/services/progress.py).
ProgressCallback = Callable[[ProgressUpdate], None]


class IClock(ABC):
    """Source of time and of cooperative sleeps."""

    @abstractmethod
    def time(self) -> float:
        """Wall-clock unix timestamp in seconds (token expiry, release cutoffs)."""
        pass

    @abstractmethod
    def monotonic(self) -> float:
        """Monotonic seconds (rate windows, cache ages, ETA)."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the current task without blocking others."""
        pass


class ICredentialStore(ABC):
    """Durable storage for the current OAuth credential."""

    @abstractmethod
    def load(self) -> Credential | None:
        """Load the stored credential, None if there is none."""
        pass

    @abstractmethod
    def store(self, credential: Credential) -> None:
        """Persist a credential, replacing any previous one."""
        pass


class ITokenIssuer(ABC):
    """Exchanges a refresh token for a fresh access token."""

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> Credential:
        """Refresh an access token.

        Args:
            refresh_token: Refresh token of the current credential

        Returns:
            New credential (refresh token rotated if the issuer sent a new one)

        Raises:
            TokenRefreshException: If the refresh token is invalid or revoked
        """
        pass


__all__ = [
    "IClock",
    "ICredentialStore",
    "ITokenIssuer",
    "ProgressCallback",
]
