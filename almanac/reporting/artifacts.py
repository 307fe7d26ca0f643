r"""Filesystem adapter for the ``ArtifactStore`` protocol.

Exports are written under a predictable directory structure::

    {base_path}/{user_id}/{report_id}.{extension}

and exposed through signed, expiring URLs of the form::

    {base_url}/artifacts/{user_id}/{report_id}.{extension}?expires=...&signature=...

The signature is an HMAC-SHA256 over the artifact path and the expiry
timestamp, so a URL cannot be re-pointed at another user's file or have its
lifetime extended.

Usage
-----
>>> store = FilesystemArtifactStore(
...     Path("/var/lib/almanac/artifacts"),
...     base_url="https://reports.example.com",
...     signer=UrlSigner(b"secret"),
... )
>>> published = await store.publish(
...     "user-1", "monthly-2026-01-01", artifact, ttl=dt.timedelta(hours=24)
... )

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import hashlib
import hmac
import typing as typ
from urllib.parse import quote, urlencode

from almanac.collaborators import PublishedArtifact
from almanac.common.time import ensure_utc, utcnow

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from almanac.collaborators import RenderedArtifact

_MEDIA_TYPES: dict[str, str] = {
    "md": "text/markdown; charset=utf-8",
    "pdf": "application/pdf",
    "html": "text/html; charset=utf-8",
}
_FORBIDDEN_COMPONENTS = frozenset({"", ".", ".."})


def _safe_component(value: str, *, label: str) -> str:
    """Return ``value`` if it is usable as a single path component."""
    if value in _FORBIDDEN_COMPONENTS or any(ch in value for ch in "/\\\x00"):
        msg = f"{label} {value!r} is not a valid path component"
        raise ValueError(msg)
    return value


def media_type_for(filename: str) -> str:
    """Return the media type served for ``filename``."""
    _, _, extension = filename.rpartition(".")
    return _MEDIA_TYPES.get(extension.lower(), "application/octet-stream")


class UrlSigner:
    """Sign and verify artifact paths with an expiry."""

    def __init__(self, key: bytes) -> None:
        """Initialise the signer with a secret key."""
        if not key:
            msg = "artifact signing key must not be empty"
            raise ValueError(msg)
        self._key = key

    def sign(self, path: str, expires: int) -> str:
        """Return the hex signature for ``path`` valid until ``expires``."""
        message = f"{path}\n{expires}".encode()
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def verify(
        self,
        path: str,
        expires: int,
        signature: str,
        *,
        now: dt.datetime | None = None,
    ) -> bool:
        """Return whether ``signature`` matches and has not expired."""
        current = int(ensure_utc(now or utcnow()).timestamp())
        if current > expires:
            return False
        return hmac.compare_digest(self.sign(path, expires), signature)


@dc.dataclass(frozen=True, slots=True)
class StoredArtifact:
    """An artifact resolved from disk for download."""

    path: Path
    media_type: str


class FilesystemArtifactStore:
    """Publish rendered exports to the local filesystem.

    Parameters
    ----------
    base_path
        Root directory for artifact storage.
    base_url
        Public origin the download URLs are built on.
    signer
        Signs and verifies download URLs.
    clock
        Source of the current time; defaults to ``utcnow``.

    """

    def __init__(
        self,
        base_path: Path,
        *,
        base_url: str,
        signer: UrlSigner,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Initialise the store."""
        self._base_path = base_path
        self._base_url = base_url.rstrip("/")
        self._signer = signer
        self._clock = clock

    @staticmethod
    def url_path(user_id: str, filename: str) -> str:
        """Return the URL path an artifact is served from."""
        return f"/artifacts/{quote(user_id, safe='')}/{quote(filename, safe='')}"

    async def publish(
        self,
        user_id: str,
        report_id: str,
        artifact: RenderedArtifact,
        *,
        ttl: dt.timedelta,
    ) -> PublishedArtifact:
        """Write ``artifact`` and return a signed URL valid for ``ttl``."""
        user_dir = self._base_path / _safe_component(user_id, label="user id")
        filename = _safe_component(
            f"{report_id}.{artifact.extension}", label="artifact name"
        )
        await asyncio.to_thread(user_dir.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread((user_dir / filename).write_bytes, artifact.content)

        expires_at = (self._clock() + ttl).replace(microsecond=0)
        expires = int(expires_at.timestamp())
        path = self.url_path(user_id, filename)
        query = urlencode({"expires": expires, "signature": self._signer.sign(path, expires)})
        return PublishedArtifact(
            url=f"{self._base_url}{path}?{query}",
            expires_at=expires_at,
        )

    def verify(self, user_id: str, filename: str, expires: int, signature: str) -> bool:
        """Return whether a download request carries a valid signature."""
        return self._signer.verify(
            self.url_path(user_id, filename),
            expires,
            signature,
            now=self._clock(),
        )

    async def open(self, user_id: str, filename: str) -> StoredArtifact | None:
        """Return the stored artifact, or ``None`` when it does not exist."""
        try:
            path = (
                self._base_path
                / _safe_component(user_id, label="user id")
                / _safe_component(filename, label="artifact name")
            )
        except ValueError:
            return None
        if not await asyncio.to_thread(path.is_file):
            return None
        return StoredArtifact(path=path, media_type=media_type_for(filename))


__all__ = [
    "FilesystemArtifactStore",
    "StoredArtifact",
    "UrlSigner",
    "media_type_for",
]
