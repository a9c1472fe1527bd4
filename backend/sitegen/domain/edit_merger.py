"""Apply visual-editor edits to a persisted file set.

Text edits are literal substring replacements in markup files. Style edits
are never applied to markup; they become one override block appended to
the global stylesheet, keyed by the element's structural CSS path.

This is a best-effort textual patch: edits that match nothing are skipped.
"""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

import structlog

from sitegen.domain.file_types import is_editable_markup
from sitegen.schemas.generation import PendingChange

logger = structlog.get_logger(__name__)

GLOBAL_STYLESHEET_PATH = "src/app/globals.css"
OVERRIDES_HEADER = "\n\n/* Visual Editor Overrides */\n"

_UPPER_RE = re.compile(r"[A-Z]")


@dataclass(frozen=True)
class FileRecord:
    """A file in a version's file set. Only path and content take part in merging."""

    file_path: str
    content: str
    file_type: str | None = None
    section_type: str | None = None


@dataclass(frozen=True)
class MergeResult:
    files: list[FileRecord]
    text_applied: int
    style_rules: int


def to_kebab_case(prop: str) -> str:
    """``backgroundColor`` -> ``background-color``. Already-kebab names pass through."""
    return _UPPER_RE.sub(lambda m: "-" + m.group(0).lower(), prop)


def coalesce_pending_changes(changes: Iterable[PendingChange]) -> list[PendingChange]:
    """Keep only the latest style change per (cssPath, property).

    Text changes are all kept. The surviving style change moves to the
    position of the latest write, matching how the editor queues them.
    """
    result: list[PendingChange] = []
    for change in changes:
        if change.type == "style" and change.property:
            result = [
                c
                for c in result
                if not (c.type == "style" and c.css_path == change.css_path and c.property == change.property)
            ]
        result.append(change)
    return result


def _apply_text_change(files: list[FileRecord], change: PendingChange) -> bool:
    if not change.old_text or change.new_text is None or change.old_text == change.new_text:
        return False

    for i, file in enumerate(files):
        if is_editable_markup(file.file_path) and change.old_text in file.content:
            files[i] = replace(file, content=file.content.replace(change.old_text, change.new_text, 1))
            return True

    # Rendered text is often whitespace-normalised relative to the source
    trimmed_old = change.old_text.strip()
    if not trimmed_old:
        return False
    for i, file in enumerate(files):
        if is_editable_markup(file.file_path) and trimmed_old in file.content:
            files[i] = replace(file, content=file.content.replace(trimmed_old, change.new_text.strip(), 1))
            return True

    return False


def _group_styles(changes: Iterable[PendingChange]) -> dict[str, dict[str, str]]:
    styles: dict[str, dict[str, str]] = {}
    for change in changes:
        if change.type != "style" or not change.property or change.new_value is None:
            continue
        styles.setdefault(change.css_path, {})[change.property] = change.new_value
    return styles


def build_override_block(styles: dict[str, dict[str, str]]) -> str:
    block = OVERRIDES_HEADER
    for selector, declarations in styles.items():
        lines = [f"  {to_kebab_case(prop)}: {value} !important;" for prop, value in declarations.items()]
        if lines:
            block += f"{selector} {{\n" + "\n".join(lines) + "\n}\n"
    return block


def merge_visual_edits(files: Sequence[FileRecord], changes: Sequence[PendingChange]) -> MergeResult:
    """Apply ``changes`` to ``files`` and report what took effect. Input is not mutated."""
    result = list(files)

    text_applied = 0
    for change in changes:
        if change.type == "text" and _apply_text_change(result, change):
            text_applied += 1

    styles = _group_styles(changes)
    style_rules = 0
    if styles:
        index = next((i for i, f in enumerate(result) if f.file_path == GLOBAL_STYLESHEET_PATH), None)
        if index is None:
            logger.info("visual_edit_styles_skipped", reason="no_global_stylesheet", selectors=len(styles))
        else:
            sheet = result[index]
            result[index] = replace(sheet, content=sheet.content + build_override_block(styles))
            style_rules = len(styles)

    return MergeResult(files=result, text_applied=text_applied, style_rules=style_rules)


def apply_visual_edits(files: Sequence[FileRecord], changes: Sequence[PendingChange]) -> list[FileRecord]:
    """Return a new file set with ``changes`` applied. Unaffected files pass through unchanged."""
    return merge_visual_edits(files, changes).files
