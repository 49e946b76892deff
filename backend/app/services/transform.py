from __future__ import annotations

import base64
import binascii
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Optional

import httpx
from PIL import Image, ImageDraw

from app.core.errors import UpstreamBlocked, UpstreamEmpty, UpstreamError, UpstreamNoImage
from app.core.settings import Settings, settings
from app.schemas.contracts import Usage

NORMAL_STOP = "STOP"
SAFETY_CATEGORIES = [
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_HARASSMENT",
]


@dataclass
class TransformRequest:
    instruction: str
    image: bytes
    mime_type: str
    model: str
    logo: Optional[bytes] = None
    aspect_ratio: Optional[str] = None
    image_size: Optional[str] = None


@dataclass
class TransformResult:
    image: bytes
    mime_type: str = "image/png"
    usage: Usage = field(default_factory=Usage)


class TransformClient(ABC):
    @abstractmethod
    def transform(self, request: TransformRequest) -> TransformResult:
        raise NotImplementedError


def _inline(data: bytes, mime_type: str) -> dict:
    return {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode("ascii")}}


def build_payload(request: TransformRequest) -> dict:
    parts: list[dict] = [{"text": request.instruction}, _inline(request.image, request.mime_type)]
    if request.logo:
        parts.append(_inline(request.logo, "image/png"))
    payload: dict[str, Any] = {
        "contents": [{"parts": parts}],
        "safetySettings": [{"category": c, "threshold": "BLOCK_ONLY_HIGH"} for c in SAFETY_CATEGORIES],
    }
    image_config = {}
    if request.aspect_ratio:
        image_config["aspectRatio"] = request.aspect_ratio
    if request.image_size:
        image_config["imageSize"] = request.image_size
    if image_config:
        payload["generationConfig"] = {"imageConfig": image_config}
    return payload


def parse_usage(body: dict) -> Usage:
    meta = body.get("usageMetadata") or {}
    return Usage(
        prompt_tokens=meta.get("promptTokenCount") or 0,
        candidate_tokens=meta.get("candidatesTokenCount") or 0,
        total_tokens=meta.get("totalTokenCount") or 0,
    )


def parse_generate_response(body: dict) -> TransformResult:
    """Interpret a generateContent response, raising on every unusable shape."""
    candidates = body.get("candidates") or []
    if not candidates:
        raise UpstreamEmpty("No candidates returned from the transform service")
    candidate = candidates[0]

    finish_reason = candidate.get("finishReason")
    if finish_reason and finish_reason != NORMAL_STOP:
        raise UpstreamBlocked(f"Generation stopped: {finish_reason}")

    parts = (candidate.get("content") or {}).get("parts") or []
    if not parts:
        raise UpstreamEmpty("No content parts in response")

    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data") or {}
        if inline.get("data"):
            try:
                image = base64.b64decode(inline["data"], validate=True)
            except (binascii.Error, ValueError) as exc:
                raise UpstreamNoImage("Image data in response is not valid base64") from exc
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return TransformResult(image=image, mime_type=mime_type, usage=parse_usage(body))

    raise UpstreamNoImage("No image data in response")


class GeminiTransformClient(TransformClient):
    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def transform(self, request: TransformRequest) -> TransformResult:
        if not self.api_key:
            raise UpstreamError("gemini_api_key is not configured")
        url = f"{self.base_url}/models/{request.model}:generateContent"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(
                    url,
                    json=build_payload(request),
                    headers={"x-goog-api-key": self.api_key, "User-Agent": settings.user_agent},
                )
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(f"Transform service returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Transform request failed: {exc}") from exc
        except ValueError as exc:
            raise UpstreamError("Transform service returned invalid JSON") from exc
        return parse_generate_response(body)


class MockTransformClient(TransformClient):
    """Offline stand-in: draws the instruction head onto a blank PNG."""

    def __init__(self, width: int = 512, height: int = 512):
        self.width = width
        self.height = height

    def transform(self, request: TransformRequest) -> TransformResult:
        img = Image.new("RGB", (self.width, self.height), "white")
        draw = ImageDraw.Draw(img)
        draw.text((20, 20), f"Mock localization\n{request.instruction.strip()[:120]}", fill="black")
        buf = BytesIO()
        img.save(buf, format="PNG")
        return TransformResult(image=buf.getvalue(), usage=Usage())


def get_transform_client(name: str, config: Settings = settings) -> TransformClient:
    if name == "gemini":
        return GeminiTransformClient(
            api_key=config.gemini_api_key,
            base_url=config.gemini_base_url,
            timeout=config.transform_timeout_s,
        )
    return MockTransformClient()
