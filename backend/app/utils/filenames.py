"""Output filename derivation.

Templates use JavaScript-style replacement references (``$1``, ``$<name>``,
``$&``, ``$$``...) because that is what presets are authored with. The literal
``TIMESTAMP`` token is replaced first, then the group references are expanded
against the first match of the pattern.
"""
from __future__ import annotations

import logging
import re
import time
from typing import Optional
from urllib.parse import urlparse

from app.core.errors import PatternError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS_RE = re.compile(r"\.(png|jpg|jpeg|webp|gif)\Z", re.IGNORECASE)
TIMESTAMP_TOKEN = "TIMESTAMP"
DEFAULT_EXTENSION = ".png"
_REFERENCE_RE = re.compile(r"\$(\$|&|`|'|<([^>]*)>|\d{1,2})")


def _now_ms() -> int:
    return int(time.time() * 1000)


def filename_from_url(url: str) -> str:
    try:
        path = urlparse(url).path
    except ValueError:
        return "image"
    return path.rsplit("/", 1)[-1] or "image"


def _working_name(original: str) -> str:
    if original.startswith("http"):
        return original.split("/")[-1].split("?")[0] or "image"
    return original


def _compile(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise PatternError(f"invalid filename pattern {pattern!r}: {exc}") from exc


def _expand(template: str, match: re.Match) -> str:
    subject = match.string
    group_count = len(match.groups())

    def _ref(ref: re.Match) -> str:
        token = ref.group(1)
        if token == "$":
            return "$"
        if token == "&":
            return match.group(0)
        if token == "`":
            return subject[: match.start()]
        if token == "'":
            return subject[match.end():]
        if ref.group(2) is not None:
            name = ref.group(2)
            if not match.re.groupindex:
                return ref.group(0)
            # with named groups present, an unknown name expands to nothing
            if name not in match.re.groupindex:
                return ""
            return match.group(name) or ""
        # "$12" means group 12 if it exists, otherwise group 1 followed by "2"
        if len(token) == 2 and int(token) > group_count:
            index, rest = int(token[0]), token[1]
        else:
            index, rest = int(token), ""
        if index == 0 or index > group_count:
            return ref.group(0)
        return (match.group(index) or "") + rest

    return _REFERENCE_RE.sub(_ref, template)


def derive_output_filename(
    original: str,
    find_pattern: str,
    replace_template: str,
    now_ms: Optional[int] = None,
) -> str:
    timestamp = str(now_ms if now_ms is not None else _now_ms())
    name = _working_name(original)

    if find_pattern and replace_template:
        try:
            regex = _compile(find_pattern)
        except PatternError as exc:
            logger.warning("Falling back to default filename: %s", exc)
        else:
            match = regex.search(name)
            if match:
                prepared = replace_template.replace(TIMESTAMP_TOKEN, timestamp)
                new_name = name[: match.start()] + _expand(prepared, match) + name[match.end():]
                if IMAGE_EXTENSIONS_RE.search(new_name):
                    return new_name
                return new_name + DEFAULT_EXTENSION

    return f"localized_{timestamp}{DEFAULT_EXTENSION}"
