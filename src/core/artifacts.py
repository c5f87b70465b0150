"""
Artifact Store: uploads identity scans and payment proofs, deletes them again.

To add a new backend:
1. Subclass ArtifactStore
2. Implement _put() and _delete()
3. Register it with @register_artifact_store("<name>")

`put()` raises ArtifactWriteError on any failure. `delete()` never raises:
a missing object counts as deleted and any other failure is logged and
reported as False, so storage hygiene never blocks a guest's submission.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

import httpx
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class ArtifactWriteError(Exception):
    """Upload failed; the caller must assume nothing about the previous artifact."""


class ArtifactNotFoundError(Exception):
    """The object behind a locator no longer exists."""


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(name: str, max_length: int = 100) -> str:
    """Strip directories and unsafe characters: 'Mein Pass (1).PDF' -> 'Mein_Pass_1_.PDF'."""
    base = PurePosixPath((name or "").replace("\\", "/")).name
    safe = _UNSAFE_CHARS.sub("_", base).strip("._")
    return (safe or "upload")[-max_length:]


def derive_artifact_path(
    booking_token: str,
    slot_key: str,
    filename: str,
    now: datetime | None = None,
) -> str:
    """
    Build the object path for an upload.

    Format: bookings/<token>/<slot_key>/<epoch-millis>_<sanitized-name>
    The (token, slot) prefix makes every object traceable to its owner.
    """
    moment = now or datetime.now(timezone.utc)
    stamp = int(moment.timestamp() * 1000)
    return f"bookings/{booking_token}/{slot_key}/{stamp}_{sanitize_filename(filename)}"


class ArtifactStore(ABC):
    """Base class for all artifact store backends."""

    backend: str = ""

    def __init__(self, config: dict | None = None):
        self.config = config or {}

    async def put(self, data: bytes, content_type: str, path: str) -> str:
        """
        Store `data` under `path`.

        Returns:
            Durable locator for the stored object.

        Raises:
            ArtifactWriteError: If the object could not be stored.
        """
        try:
            locator = await self._put(data, content_type, path)
        except ArtifactWriteError:
            logger.error("Artifact upload failed: backend=%s path=%s", self.backend, path)
            raise
        except Exception as e:
            logger.error("Artifact upload failed: backend=%s path=%s error=%s", self.backend, path, e)
            raise ArtifactWriteError(str(e)) from e

        logger.info("Artifact stored: backend=%s path=%s size=%s", self.backend, path, len(data))
        return locator

    async def delete(self, locator: str) -> bool:
        """Delete the object behind `locator`. Returns False only on a non-fatal failure."""
        try:
            await self._delete(locator)
        except ArtifactNotFoundError:
            logger.warning("Artifact already absent, nothing to delete: %s", locator)
            return True
        except Exception as e:
            logger.error("Artifact delete failed (ignored): %s error=%s", locator, e)
            return False

        logger.info("Artifact deleted: %s", locator)
        return True

    @abstractmethod
    async def _put(self, data: bytes, content_type: str, path: str) -> str:
        """Store the object and return its locator."""

    @abstractmethod
    async def _delete(self, locator: str) -> None:
        """Delete the object; raise ArtifactNotFoundError if it does not exist."""


async def delete_quietly(store: ArtifactStore, locators: Iterable[str | None]) -> int:
    """Best-effort delete of many locators. Returns the number of failed deletes."""
    failures = 0
    seen: set[str] = set()
    for locator in locators:
        if not locator or locator in seen:
            continue
        seen.add(locator)
        if not await store.delete(locator):
            failures += 1
    return failures


# --- Backend Registry ---

ARTIFACT_STORE_REGISTRY: dict[str, type[ArtifactStore]] = {}


def register_artifact_store(backend: str):
    """Decorator to register an artifact store class."""

    def decorator(cls: type[ArtifactStore]):
        cls.backend = backend
        ARTIFACT_STORE_REGISTRY[backend] = cls
        return cls

    return decorator


def get_artifact_store(backend: str, config: dict | None = None) -> ArtifactStore:
    """
    Factory: create an artifact store by backend name.

    Raises:
        ValueError: If the backend is not registered.
    """
    cls = ARTIFACT_STORE_REGISTRY.get(backend)
    if cls is None:
        available = ", ".join(ARTIFACT_STORE_REGISTRY.keys()) or "(none)"
        raise ValueError(f"Unknown artifact backend: '{backend}'. Available: {available}")
    return cls(config)


# --- Backends ---


@register_artifact_store("memory")
class InMemoryArtifactStore(ArtifactStore):
    """Process-local store for tests and demos. Locator format: memory:<path>."""

    PREFIX = "memory:"

    def __init__(self, config: dict | None = None):
        super().__init__(config)
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def _put(self, data: bytes, content_type: str, path: str) -> str:
        locator = f"{self.PREFIX}{path}"
        self.objects[locator] = (data, content_type)
        return locator

    async def _delete(self, locator: str) -> None:
        if locator not in self.objects:
            raise ArtifactNotFoundError(locator)
        del self.objects[locator]


@register_artifact_store("local")
class LocalArtifactStore(ArtifactStore):
    """
    Filesystem store.

    Config keys:
        root: str, base directory (default "uploads")
    """

    PREFIX = "local:"

    def __init__(self, config: dict | None = None):
        super().__init__(config)
        self.root = Path(self.config.get("root") or "uploads")

    def _resolve(self, relative: str) -> Path:
        root = self.root.resolve()
        target = (root / relative).resolve()
        if root != target and root not in target.parents:
            raise ValueError(f"Path escapes artifact root: {relative}")
        return target

    async def _put(self, data: bytes, content_type: str, path: str) -> str:
        target = self._resolve(path)
        await run_in_threadpool(self._write, target, data)
        return f"{self.PREFIX}{path}"

    async def _delete(self, locator: str) -> None:
        if not locator.startswith(self.PREFIX):
            raise ValueError(f"Not a local artifact locator: {locator}")
        target = self._resolve(locator[len(self.PREFIX):])
        if not await run_in_threadpool(self._unlink, target):
            raise ArtifactNotFoundError(locator)

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    @staticmethod
    def _unlink(target: Path) -> bool:
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        return True


@register_artifact_store("http")
class HttpArtifactStore(ArtifactStore):
    """
    Generic object storage reachable over HTTP (PUT to write, DELETE to remove).

    Config keys:
        base_url: str, bucket endpoint, e.g. https://storage.example.com/guest-docs
        api_token: str, bearer token (optional)
        timeout: float, request timeout in seconds (default 30)
    """

    def __init__(self, config: dict | None = None):
        super().__init__(config)
        self.base_url = str(self.config.get("base_url", "")).rstrip("/")
        self.api_token = str(self.config.get("api_token", "") or "")
        self.timeout = float(self.config.get("timeout", 30.0))

    def _headers(self) -> dict:
        if not self.api_token:
            return {}
        return {"Authorization": f"Bearer {self.api_token}"}

    async def _put(self, data: bytes, content_type: str, path: str) -> str:
        if not self.base_url:
            raise ArtifactWriteError("object storage base_url is not configured")

        url = f"{self.base_url}/{path}"
        headers = {**self._headers(), "Content-Type": content_type or "application/octet-stream"}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.put(url, content=data, headers=headers)

        if resp.status_code in (401, 403):
            raise ArtifactWriteError(f"object_store_unauthorized_{resp.status_code}")
        if resp.status_code >= 400:
            raise ArtifactWriteError(f"object_store_http_{resp.status_code}")
        return url

    async def _delete(self, locator: str) -> None:
        if not self.base_url or not locator.startswith(f"{self.base_url}/"):
            raise ValueError(f"Locator does not belong to {self.base_url or '(unconfigured)'}: {locator}")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.delete(locator, headers=self._headers())

        if resp.status_code == 404:
            raise ArtifactNotFoundError(locator)
        if resp.status_code >= 400:
            raise RuntimeError(f"object_store_http_{resp.status_code}")
