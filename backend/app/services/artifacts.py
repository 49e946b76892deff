from __future__ import annotations

import logging
import re
import uuid
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from app.core.errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)

FORMAT_EXTENSIONS = {"PNG": "png", "JPEG": "jpg", "WEBP": "webp", "GIF": "gif"}
CONTENT_TYPES = {"png": "image/png", "jpg": "image/jpeg", "jpeg": "image/jpeg", "webp": "image/webp", "gif": "image/gif"}
_ARTIFACT_ID_RE = re.compile(r"^[0-9a-f]{32}\.(png|jpg|webp|gif)$")


class ArtifactStore(ABC):
    @abstractmethod
    def store(self, data: bytes) -> str:
        raise NotImplementedError

    @abstractmethod
    def get_url(self, artifact_id: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def open(self, artifact_id: str) -> Tuple[bytes, str]:
        raise NotImplementedError


def detect_extension(data: bytes) -> str:
    try:
        with Image.open(BytesIO(data)) as im:
            fmt = im.format
    except (UnidentifiedImageError, OSError) as exc:
        raise StorageError("Generated payload is not a readable image") from exc
    return FORMAT_EXTENSIONS.get(fmt or "", "png")


class LocalArtifactStore(ArtifactStore):
    """Append-only blob store on the local filesystem.

    Artifact ids are ``<uuid hex>.<ext>``; a file is created exclusively and
    never rewritten.
    """

    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def store(self, data: bytes) -> str:
        if not data:
            raise StorageError("Refusing to store an empty artifact")
        artifact_id = f"{uuid.uuid4().hex}.{detect_extension(data)}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with (self.root / artifact_id).open("xb") as f:
                f.write(data)
        except OSError as exc:
            raise StorageError(f"Failed to persist artifact: {exc}") from exc
        logger.info("Stored artifact %s (%d bytes)", artifact_id, len(data))
        return artifact_id

    def get_url(self, artifact_id: str) -> str:
        return f"{self.public_base_url}/api/files?id={artifact_id}"

    def open(self, artifact_id: str) -> Tuple[bytes, str]:
        if not _ARTIFACT_ID_RE.match(artifact_id):
            raise NotFoundError(f"Artifact {artifact_id} not found")
        path = self.root / artifact_id
        if not path.exists():
            raise NotFoundError(f"Artifact {artifact_id} not found")
        ext = artifact_id.rsplit(".", 1)[-1]
        return path.read_bytes(), CONTENT_TYPES[ext]
