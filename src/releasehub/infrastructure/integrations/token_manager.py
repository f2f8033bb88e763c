"""Token lifecycle manager with single-flight refresh.

Hey future me - this is the ONE place that owns the access/refresh token pair!
Every outbound request reads the current token from here, and every 401 ends up here.

State machine (nothing else exists):
    Valid → Refreshing → Valid                      (refresh succeeded)
    Valid → Refreshing → propagate original 401     (refresh failed)

Single-flight: the first caller that needs a refresh creates ONE asyncio task and parks it
in self._refresh_task. Everybody else who hits a 401 meanwhile awaits that SAME task, so
ten concurrent 401s cause exactly one call to the token issuer. The slot is cleared when
the task finishes (success or failure) so the next expiry can trigger a fresh refresh.
"""

import asyncio
import logging

import httpx

from releasehub.domain.dtos import Credential
from releasehub.domain.exceptions import AuthenticationError, DomainException
from releasehub.domain.ports import IClock, ICredentialStore, ITokenIssuer

logger = logging.getLogger(__name__)

# Refresh proactively when the token expires within this window
EXPIRY_MARGIN_SECONDS = 60.0


class TokenManager:
    """Holds the current credential and refreshes it at most once at a time."""

    def __init__(
        self,
        issuer: ITokenIssuer,
        store: ICredentialStore,
        clock: IClock,
        credential: Credential | None = None,
    ) -> None:
        self._issuer = issuer
        self._store = store
        self._clock = clock
        self._credential = credential if credential is not None else store.load()
        self._refresh_task: asyncio.Task[Credential | None] | None = None
        self.refresh_count = 0

    @property
    def credential(self) -> Credential | None:
        """Current credential (None when nobody logged in yet)."""
        return self._credential

    @property
    def is_authenticated(self) -> bool:
        return self._credential is not None

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None

    def set_credential(self, credential: Credential) -> None:
        """Install a freshly issued credential (e.g. after the OAuth login flow)."""
        self._credential = credential
        self._store.store(credential)

    def authorization_header(self) -> dict[str, str]:
        """Build the Authorization header for the current access token."""
        if self._credential is None:
            return {}
        return {"Authorization": f"Bearer {self._credential.access_token}"}

    # Hey future me - ensure_fresh() is the PROACTIVE path: if we already know the token is
    # about to expire, refresh before sending instead of eating a 401 first. It shares the
    # single-flight slot with the reactive 401 path.
    async def ensure_fresh(self) -> None:
        """Refresh ahead of time if the token expires within the safety margin."""
        credential = self._credential
        if credential is None or not credential.refresh_token:
            return
        if credential.expires_within(self._clock.time(), EXPIRY_MARGIN_SECONDS):
            logger.debug("Access token about to expire, refreshing proactively")
            refreshed = await self.refresh(credential.access_token)
            # inside the margin the old token still works. Past expiry it is a sure 401.
            if refreshed is None and credential.expires_within(self._clock.time()):
                raise AuthenticationError(
                    "Spotify session expired and could not be refreshed. Please log in again."
                )

    async def refresh(self, stale_access_token: str | None = None) -> Credential | None:
        """Get a refreshed credential, joining an in-flight refresh if there is one.

        Args:
            stale_access_token: Token the failed request was sent with. If the current
                credential already carries a different token, somebody else refreshed
                in the meantime and we just hand that one back.

        Returns:
            The refreshed credential, or None if refreshing is impossible or failed
        """
        current = self._credential
        if current is None:
            return None

        if (
            stale_access_token is not None
            and self._refresh_task is None
            and current.access_token != stale_access_token
        ):
            return current

        if self._refresh_task is None:
            if not current.refresh_token:
                logger.warning("Access token rejected and no refresh token available")
                return None
            self._refresh_task = asyncio.create_task(
                self._do_refresh(current.refresh_token)
            )

        # shield: one waiter getting cancelled must not cancel the shared refresh
        return await asyncio.shield(self._refresh_task)

    async def _do_refresh(self, refresh_token: str) -> Credential | None:
        try:
            self.refresh_count += 1
            refreshed = await self._issuer.refresh_access_token(refresh_token)
            self._credential = refreshed
            logger.info("Access token refreshed")
            try:
                self._store.store(refreshed)
            except OSError as e:
                # the new token works for this session, the user just logs in again next start
                logger.warning(f"Could not persist refreshed credential: {type(e).__name__}")
            return refreshed
        except DomainException as e:
            # message only - never the token itself
            logger.warning(f"Failed to refresh access token: {e.message}")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"Token refresh request failed: {type(e).__name__}")
            return None
        finally:
            self._refresh_task = None


__all__ = ["EXPIRY_MARGIN_SECONDS", "TokenManager"]
