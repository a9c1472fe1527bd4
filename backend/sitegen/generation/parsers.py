"""Parsers for model output.

This module provides:
- extract_completed_blocks: Incrementally pull finished ```lang:path fenced files from streamed text
- parse_component_output: Extract every fenced file from a complete response
- parse_design_system / parse_blueprint: Parse and validate the JSON stage outputs
- extract_component_name: Human-friendly component name from a file path
"""

import json
import re

from pydantic import ValidationError

from sitegen.core.exceptions import BlueprintParseError, DesignSystemParseError
from sitegen.schemas.generation import ComponentOutput, DesignSystem, PageBlueprint

# ```language:path/to/file.ext\n ... ```
#   [1] language  [2] file path  [3] content
CODE_BLOCK_RE = re.compile(r"```(\w+):([^\n]+)\n([\s\S]*?)```")

# Opening header of a block whose path line is complete
BLOCK_HEADER_RE = re.compile(r"```\w+:([^\n]+)\n")

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n([\s\S]*?)```")
_COMPONENT_NAME_RE = re.compile(r"(?:^|/)([^/]+)\.(?:tsx?|jsx?|css)$")


def normalize_path(file_path: str) -> str:
    file_path = file_path.strip()
    if file_path.startswith("./"):
        file_path = file_path[2:]
    return file_path


def _block_from_match(match: re.Match) -> ComponentOutput | None:
    content = match.group(3)
    if not content.strip():
        return None
    return ComponentOutput(
        file_path=normalize_path(match.group(2)),
        content=content.rstrip(),
        language=match.group(1).strip(),
    )


def parse_component_output(raw: str) -> list[ComponentOutput]:
    """Extract all fenced file blocks from a complete model response. Empty blocks are skipped."""
    blocks = []
    for match in CODE_BLOCK_RE.finditer(raw):
        block = _block_from_match(match)
        if block is not None:
            blocks.append(block)
    return blocks


def extract_completed_blocks(buffer: str) -> tuple[list[ComponentOutput], str]:
    """Pull finished blocks out of a streaming buffer.

    Returns:
        (blocks, remaining) where ``remaining`` is the unprocessed tail that
        may hold the start of an unfinished block.
    """
    blocks = []
    last_end = 0
    for match in CODE_BLOCK_RE.finditer(buffer):
        block = _block_from_match(match)
        if block is not None:
            blocks.append(block)
        last_end = match.end()
    return blocks, buffer[last_end:]


def find_open_block_path(buffer: str) -> str | None:
    """Path of the first block header in ``buffer``, once its header line is complete."""
    match = BLOCK_HEADER_RE.search(buffer)
    if match is None:
        return None
    return normalize_path(match.group(1))


def extract_component_name(file_path: str) -> str | None:
    """``src/components/Hero.tsx`` -> ``Hero``. Non-source files give None."""
    match = _COMPONENT_NAME_RE.search(file_path)
    return match.group(1) if match else None


def extract_json_from_response(raw: str) -> str:
    """Pull a JSON document out of a response that may wrap it in a fence or prose."""
    fenced = _JSON_FENCE_RE.search(raw)
    if fenced:
        return fenced.group(1).strip()

    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last > first:
        return raw[first : last + 1]

    return raw.strip()


def _format_issues(exc: ValidationError) -> str:
    return "\n".join(
        f"  - {'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def parse_design_system(raw: str) -> DesignSystem:
    """Parse and validate a design system.

    Raises:
        DesignSystemParseError: If the JSON is malformed or fails validation
    """
    try:
        data = json.loads(extract_json_from_response(raw))
    except json.JSONDecodeError as exc:
        raise DesignSystemParseError(f"Failed to parse design system JSON: {exc}") from exc

    try:
        return DesignSystem.model_validate(data)
    except ValidationError as exc:
        raise DesignSystemParseError(f"Design system validation failed:\n{_format_issues(exc)}") from exc


def parse_blueprint(raw: str) -> PageBlueprint:
    """Parse and validate a page blueprint.

    Raises:
        BlueprintParseError: If the JSON is malformed or fails validation
    """
    try:
        data = json.loads(extract_json_from_response(raw))
    except json.JSONDecodeError as exc:
        raise BlueprintParseError(f"Failed to parse blueprint JSON: {exc}") from exc

    try:
        return PageBlueprint.model_validate(data)
    except ValidationError as exc:
        raise BlueprintParseError(f"Blueprint validation failed:\n{_format_issues(exc)}") from exc
