from __future__ import annotations

from typing import Optional, Tuple

import httpx

from app.core.settings import settings

DEFAULT_MIME_TYPE = "image/jpeg"


class SourceFetcher:
    """Downloads source images; returns the bytes and their MIME type."""

    def __init__(
        self,
        timeout_s: float = 30,
        user_agent: str = "",
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.timeout_s = timeout_s
        self.user_agent = user_agent or settings.user_agent
        self.transport = transport

    def fetch(self, url: str) -> Tuple[bytes, str]:
        with httpx.Client(
            timeout=self.timeout_s,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            resp = client.get(url)
            if resp.status_code >= 400:
                raise RuntimeError(f"Failed to fetch image: {resp.status_code} {resp.reason_phrase}")
            if not resp.content:
                raise RuntimeError(f"Source image at {url} is empty")
            mime_type = resp.headers.get("content-type", DEFAULT_MIME_TYPE).split(";")[0].strip()
            return resp.content, mime_type or DEFAULT_MIME_TYPE
