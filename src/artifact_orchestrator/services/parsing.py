"""Defensive parsing of model output.

Model text is never trusted to follow the requested format.  Every parser
here returns a :class:`Parsed` value tagged with the path that produced it:

* ``STRUCTURED`` -- a JSON payload (or fenced code) validated strictly;
* ``HEURISTIC`` -- keyword or line-pattern matching over free text;
* ``DEFAULT`` -- nothing usable was found, a safe default was returned.

No function in this module raises on malformed input.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from artifact_orchestrator.domain.enums import ParseKind
from artifact_orchestrator.infrastructure.validation import has_executable_construct

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Parsed(Generic[T]):
    """A parsed value plus the extraction path that produced it."""

    kind: ParseKind
    value: T
    detail: str = ""


# ---------------------------------------------------------------------------
# JSON payloads
# ---------------------------------------------------------------------------

_JSON_FENCE_RE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


def extract_json_block(text: str) -> str | None:
    """Return the first fenced ``json`` block, else the outermost ``{...}`` span."""
    match = _JSON_FENCE_RE.search(text)
    if match:
        return match.group(1)
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return None


def load_json_object(text: str) -> dict[str, Any] | None:
    """Decode the JSON object embedded in *text*, or ``None``."""
    block = extract_json_block(text)
    if block is None:
        return None
    try:
        data = json.loads(block)
    except ValueError:
        logger.debug("load_json_object: embedded JSON did not decode")
        return None
    return data if isinstance(data, dict) else None


def parse_structured(text: str, schema: type[M]) -> M | None:
    """Validate the embedded JSON object against *schema*; ``None`` on failure."""
    data = load_json_object(text)
    if data is None:
        return None
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        logger.debug("parse_structured: %s rejected payload: %s", schema.__name__, exc)
        return None


# ---------------------------------------------------------------------------
# key: value lines
# ---------------------------------------------------------------------------

_KEY_VALUE_RE = re.compile(r"^\s*[-*]?\s*([A-Za-z_]\w*)\s*[:=]\s*(.+?)\s*,?\s*$", re.MULTILINE)


def parse_key_values(text: str) -> dict[str, str]:
    """Collect ``key: value`` / ``key = value`` lines; quotes are stripped."""
    values: dict[str, str] = {}
    for key, raw in _KEY_VALUE_RE.findall(text):
        values[key] = raw.strip().strip("\"'")
    return values


# ---------------------------------------------------------------------------
# Code blocks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CodeBlock:
    """One file extracted from a model reply."""

    path: str
    content: str
    language: str
    purpose: str = ""
    dependencies: tuple[str, ...] = ()


_CODE_FENCE_RE = re.compile(r"```([A-Za-z0-9_+-]*)[^\n]*\n(.*?)```", re.DOTALL)
_FILE_DIRECTIVE_RE = re.compile(r"^\s*(?://|#|\*)\s*@file\s+(\S+)", re.MULTILINE)
_DESCRIPTION_DIRECTIVE_RE = re.compile(r"^\s*(?://|#|\*)\s*@description\s+(.+?)\s*$", re.MULTILINE)
_TS_IMPORT_RE = re.compile(r"""(?:\bfrom\s+|\brequire\(\s*|^\s*import\s+)['"]([^'"]+)['"]""", re.MULTILINE)
_PY_IMPORT_RE = re.compile(r"^\s*(?:from\s+([\w.]+)\s+import|import\s+([\w.]+))", re.MULTILINE)

_LANGUAGE_ALIASES = {
    "ts": "typescript",
    "typescript": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "javascript": "javascript",
    "jsx": "javascript",
    "py": "python",
    "python": "python",
}
_EXTENSIONS = {"typescript": "ts", "javascript": "js", "python": "py"}


def extension_for(language: str) -> str:
    return _EXTENSIONS.get(language, "txt")


def extract_dependencies(content: str, language: str) -> tuple[str, ...]:
    """Non-relative imports of *content*, in first-seen order."""
    found: list[str] = []
    if language == "python":
        for from_name, import_name in _PY_IMPORT_RE.findall(content):
            name = from_name or import_name
            if name and not name.startswith("."):
                found.append(name.split(".")[0])
    else:
        for name in _TS_IMPORT_RE.findall(content):
            if not name.startswith((".", "/")):
                found.append(name)
    return tuple(dict.fromkeys(found))


def _make_block(
    content: str,
    language: str,
    index: int,
    stem: str,
    path: str | None = None,
    purpose: str | None = None,
) -> CodeBlock:
    file_match = _FILE_DIRECTIVE_RE.search(content)
    desc_match = _DESCRIPTION_DIRECTIVE_RE.search(content)
    resolved_path = path or (file_match.group(1) if file_match else "")
    if not resolved_path:
        resolved_path = f"src/generated/{stem}-{index + 1}.{extension_for(language)}"
    return CodeBlock(
        path=resolved_path,
        content=content.strip() + "\n",
        language=language,
        purpose=purpose or (desc_match.group(1) if desc_match else ""),
        dependencies=extract_dependencies(content, language),
    )


def parse_code_blocks(
    text: str,
    default_language: str = "typescript",
    stem: str = "module",
) -> Parsed[list[CodeBlock]]:
    """Extract files from a model reply.

    Fenced code blocks are preferred; ``// @file`` and ``// @description``
    directives inside a block give its path and purpose.  A JSON payload
    with a ``files`` list is accepted next.  As a last resort, a reply that
    is itself code becomes a single block.
    """
    blocks: list[CodeBlock] = []
    for tag, body in _CODE_FENCE_RE.findall(text):
        tag = tag.lower()
        if tag == "json" or not body.strip():
            continue
        language = _LANGUAGE_ALIASES.get(tag, default_language)
        blocks.append(_make_block(body, language, len(blocks), stem))
    if blocks:
        return Parsed(ParseKind.STRUCTURED, blocks, "fenced code blocks")

    data = load_json_object(text)
    files = data.get("files") if data else None
    if isinstance(files, list):
        for entry in files:
            if not isinstance(entry, dict) or not str(entry.get("content", "")).strip():
                continue
            language = _LANGUAGE_ALIASES.get(
                str(entry.get("language", "")).lower(), default_language
            )
            blocks.append(
                _make_block(
                    str(entry["content"]),
                    language,
                    len(blocks),
                    stem,
                    path=entry.get("path") or None,
                    purpose=entry.get("purpose") or entry.get("description") or None,
                )
            )
        if blocks:
            return Parsed(ParseKind.STRUCTURED, blocks, "json files payload")

    if text.strip() and has_executable_construct(text, default_language):
        block = _make_block(text, default_language, 0, stem)
        return Parsed(ParseKind.HEURISTIC, [block], "raw reply treated as code")

    return Parsed(ParseKind.DEFAULT, [], "no code found")
