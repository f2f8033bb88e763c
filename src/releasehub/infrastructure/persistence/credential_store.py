"""Credential stores (ICredentialStore implementations)."""

import json
import logging
import os
from pathlib import Path

from releasehub.domain.dtos import Credential
from releasehub.domain.exceptions import ValidationError
from releasehub.domain.ports import ICredentialStore

logger = logging.getLogger(__name__)


class FileCredentialStore(ICredentialStore):
    """Keeps the credential in a small JSON file in the user's home.

    Hey future me - the file holds a live refresh token, so it's written with 0600 and via
    a temp file + replace. A crash mid-write must never leave half a JSON document behind,
    otherwise the user gets logged out on next start.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> Credential | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return Credential.from_dict(data)
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            # Corrupt/unreadable file = not logged in; the user just logs in again
            logger.warning(f"Ignoring unreadable credential file {self.path}: {type(e).__name__}")
            return None

    def store(self, credential: Credential) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(credential.to_dict()), encoding="utf-8")
        os.chmod(tmp_path, 0o600)
        tmp_path.replace(self.path)
        logger.debug(f"Stored credential in {self.path}")

    def clear(self) -> None:
        """Forget the stored credential (logout)."""
        self.path.unlink(missing_ok=True)


class InMemoryCredentialStore(ICredentialStore):
    """Process-local store, for tests and for sessions that must not touch disk."""

    def __init__(self, credential: Credential | None = None) -> None:
        self._credential = credential
        self.store_count = 0

    def load(self) -> Credential | None:
        return self._credential

    def store(self, credential: Credential) -> None:
        self._credential = credential
        self.store_count += 1


__all__ = ["FileCredentialStore", "InMemoryCredentialStore"]
