"""Durable storage for the code verifier across the redirect round trip.

Navigation to the provider discards in-memory state, so the verifier is
written to a named slot before navigating and read back on return.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from tunegate.auth.models.errors import StorageError

logger = logging.getLogger(__name__)

CODE_VERIFIER_KEY = "tunegate_code_verifier"


class VerifierStore(ABC):
    """A single named slot holding the current code verifier."""

    key: str = CODE_VERIFIER_KEY

    @abstractmethod
    def save(self, verifier: str) -> None:
        """Store the verifier, replacing any previous one."""

    @abstractmethod
    def load(self) -> str | None:
        """Return the stored verifier, or None if the slot is empty."""

    @abstractmethod
    def clear(self) -> None:
        """Empty the slot. Safe to call when already empty."""

    def require(self) -> str:
        """Return the stored verifier or raise.

        Raises:
            StorageError: If no verifier is stored (storage cleared, other tab)
        """
        verifier = self.load()
        if not verifier:
            raise StorageError(
                f"No code verifier found in storage slot '{self.key}'; "
                "the login attempt cannot be completed"
            )
        return verifier


class InMemoryVerifierStore(VerifierStore):
    """Process-local slot. Suitable when the redirect lands in the same process."""

    def __init__(self):
        self._verifier: str | None = None

    def save(self, verifier: str) -> None:
        self._verifier = verifier

    def load(self) -> str | None:
        return self._verifier

    def clear(self) -> None:
        self._verifier = None


class JsonFileVerifierStore(VerifierStore):
    """Slot persisted in a small JSON document on disk.

    Survives a process restart between navigation and return. Other keys in
    the document are preserved.
    """

    def __init__(self, path: str | Path, key: str = CODE_VERIFIER_KEY):
        self.path = Path(path)
        self.key = key

    def save(self, verifier: str) -> None:
        data = self._read()
        data[self.key] = verifier
        self._write(data)
        logger.debug(f"Stored code verifier in {self.path} under '{self.key}'")

    def load(self) -> str | None:
        value = self._read().get(self.key)
        if value is not None and not isinstance(value, str):
            raise StorageError(f"Storage slot '{self.key}' holds a non-string value")
        return value

    def clear(self) -> None:
        data = self._read()
        if self.key in data:
            del data[self.key]
            self._write(data)
            logger.debug(f"Cleared code verifier slot '{self.key}'")

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read verifier storage {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Verifier storage {self.path} is not a JSON object")
        return data

    def _write(self, data: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(f"Failed to write verifier storage {self.path}: {e}") from e
