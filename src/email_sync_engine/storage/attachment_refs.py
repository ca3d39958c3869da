"""Short-lived local references to downloaded attachment content.

Downloaded bytes are written to a private temporary directory and the file is
removed again after a fixed lifetime, so callers get a usable local path
without attachment data accumulating on disk.
"""

from __future__ import annotations

import asyncio
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

import structlog

from email_sync_engine.utils import now_ms

logger = structlog.get_logger()

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class AttachmentReference:
    """A local file holding attachment bytes until `expires_at_ms`."""

    path: Path
    name: str
    mime_type: str
    expires_at_ms: int


class AttachmentReferenceRegistry:
    """Creates attachment references and revokes them after `ttl_seconds`."""

    def __init__(self, ttl_seconds: float = 60.0, directory: Path | None = None) -> None:
        self._ttl_seconds = ttl_seconds
        self._directory = directory or Path(tempfile.mkdtemp(prefix="email-sync-attachments-"))
        self._directory.mkdir(parents=True, exist_ok=True)
        self._live: dict[Path, asyncio.TimerHandle | None] = {}

    @property
    def live_references(self) -> list[Path]:
        return list(self._live)

    def create(self, name: str, mime_type: str, data: bytes) -> AttachmentReference:
        """Write `data` to a new file and schedule its revocation.

        Must be called from a running event loop when automatic revocation is
        wanted; outside a loop the reference lives until `revoke` is called.
        """

        safe_name = _UNSAFE_NAME_CHARS.sub("_", name).strip("._") or "attachment"
        handle = tempfile.NamedTemporaryFile(
            dir=self._directory, prefix="att-", suffix=f"-{safe_name}", delete=False
        )
        with handle:
            handle.write(data)
        path = Path(handle.name)

        timer: asyncio.TimerHandle | None = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            timer = loop.call_later(self._ttl_seconds, self.revoke, path)
        self._live[path] = timer

        logger.debug("attachment_reference_created", path=str(path), size=len(data))
        return AttachmentReference(
            path=path,
            name=name,
            mime_type=mime_type,
            expires_at_ms=now_ms() + int(self._ttl_seconds * 1000),
        )

    def revoke(self, path: Path) -> None:
        timer = self._live.pop(path, None)
        if timer is not None:
            timer.cancel()
        path.unlink(missing_ok=True)
        logger.debug("attachment_reference_revoked", path=str(path))

    def revoke_all(self) -> None:
        for path in list(self._live):
            self.revoke(path)
