"""
Local filesystem storage for avatar images.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Optional, Protocol
import structlog

from ..core.config import Settings
from ..core.exceptions import BadRequestError

logger = structlog.get_logger()

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class IAvatarStorage(Protocol):
    max_bytes: int

    async def save(
        self,
        user_id: int,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
    ) -> str:
        ...

    async def delete(self, avatar_url: str) -> None:
        ...


class LocalAvatarStorage:
    """Stores uploads under AVATAR_DIR and returns their public URL."""

    def __init__(self, settings: Settings):
        self.directory = Path(settings.AVATAR_DIR)
        self.url_prefix = settings.AVATAR_URL_PREFIX.rstrip("/")
        self.max_bytes = settings.AVATAR_MAX_BYTES

    def _extension(self, filename: Optional[str], content_type: Optional[str]) -> str:
        if content_type not in _EXTENSIONS:
            raise BadRequestError("Avatar must be a JPEG, PNG, GIF or WebP image")
        suffix = Path(filename or "").suffix.lower()
        return suffix if suffix in _EXTENSIONS.values() else _EXTENSIONS[content_type]

    async def save(
        self,
        user_id: int,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
    ) -> str:
        """
        Write the image and return a stable reference to it.

        Raises:
            BadRequestError: If the upload is empty, too large or not an image
        """
        if not content:
            raise BadRequestError("Avatar file is empty")
        if len(content) > self.max_bytes:
            raise BadRequestError("Avatar file is too large")

        stored_name = f"{user_id}_{uuid.uuid4().hex}{self._extension(filename, content_type)}"
        path = self.directory / stored_name
        await asyncio.to_thread(self._write, path, content)

        logger.info("Avatar stored", user_id=user_id, size=len(content))
        return f"{self.url_prefix}/{stored_name}"

    async def delete(self, avatar_url: str) -> None:
        """Remove a file previously returned by save; unknown URLs are ignored."""
        prefix = f"{self.url_prefix}/"
        if not avatar_url.startswith(prefix):
            return
        name = Path(avatar_url[len(prefix):]).name
        await asyncio.to_thread((self.directory / name).unlink, missing_ok=True)
        logger.info("Avatar removed", avatar=name)

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
