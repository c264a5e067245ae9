from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import keyring
from keyring.backend import KeyringBackend
from keyring.backends import fail
from keyring.errors import KeyringError, PasswordDeleteError

from .constants import KEYRING_SERVICE_NAME, LOGGER
from .errors import StorageError


class CredentialStore(ABC):
    """Async string key-value store for secrets.

    Callers acquire the store with ``async with store:`` around each
    operation; ``close()`` runs even when the operation raises.
    """

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> "CredentialStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @abstractmethod
    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryCredentialStore(CredentialStore):
    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)


class FileCredentialStore(CredentialStore):
    def __init__(self, path: str | Path = ".credentials.json") -> None:
        self._path = Path(path)

    async def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    async def set(self, key: str, value: str) -> None:
        all_values = self._read_all()
        all_values[key] = value
        self._write_all(all_values)

    async def delete(self, key: str) -> None:
        all_values = self._read_all()
        if all_values.pop(key, None) is not None:
            self._write_all(all_values)

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as error:
            raise StorageError(f"Credential file could not be read: {error}") from error
        if not isinstance(raw, dict):
            raise StorageError("Credential file is invalid; expected top-level JSON object.")
        if not all(isinstance(value, str) for value in raw.values()):
            raise StorageError("Credential file is invalid; values must be strings.")
        return raw

    def _write_all(self, payload: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f"{self._path.name}.",
                suffix=".tmp",
                dir=self._path.parent,
            )
        except OSError as error:
            raise StorageError(f"Credential file could not be written: {error}") from error

        tmp_path = Path(tmp_name)
        try:
            try:
                handle = os.fdopen(fd, "w", encoding="utf-8")
            except Exception:
                os.close(fd)
                raise
            with handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
        except OSError as error:
            raise StorageError(f"Credential file could not be written: {error}") from error
        finally:
            if tmp_path.exists():
                tmp_path.unlink()


class KeyringCredentialStore(CredentialStore):
    """Credential store backed by the operating system keychain."""

    def __init__(self, service_name: str = KEYRING_SERVICE_NAME) -> None:
        self._service_name = service_name
        self._backend: KeyringBackend | None = None
        self._depth = 0

    async def open(self) -> None:
        if self._backend is None:
            self._backend = self._resolve_backend()
        self._depth += 1

    async def close(self) -> None:
        self._depth = max(0, self._depth - 1)
        if self._depth == 0:
            self._backend = None

    async def get(self, key: str) -> str | None:
        backend = self._acquire()
        try:
            return await asyncio.to_thread(backend.get_password, self._service_name, key)
        except KeyringError as error:
            raise StorageError(f"Keyring read failed: {error}") from error

    async def set(self, key: str, value: str) -> None:
        backend = self._acquire()
        try:
            await asyncio.to_thread(backend.set_password, self._service_name, key, value)
        except KeyringError as error:
            raise StorageError(f"Keyring write failed: {error}") from error

    async def delete(self, key: str) -> None:
        backend = self._acquire()
        try:
            await asyncio.to_thread(backend.delete_password, self._service_name, key)
        except PasswordDeleteError:
            LOGGER.debug("Keyring entry %s already absent", key)
        except KeyringError as error:
            raise StorageError(f"Keyring delete failed: {error}") from error

    def _acquire(self) -> KeyringBackend:
        if self._backend is not None:
            return self._backend
        return self._resolve_backend()

    def _resolve_backend(self) -> KeyringBackend:
        backend = keyring.get_keyring()
        if isinstance(backend, fail.Keyring):
            raise StorageError("No secure keyring backend is available.")
        return backend
