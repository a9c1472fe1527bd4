"""File classification for generated files.

Pure functions over path conventions of the generated Next.js project.
"""

from enum import StrEnum
from pathlib import PurePosixPath


class FileType(StrEnum):
    COMPONENT = "component"
    PAGE = "page"
    CONFIG = "config"
    STYLE = "style"
    DATA = "data"


# Component base name -> semantic section tag
SECTION_TYPES: dict[str, str] = {
    "Hero": "hero",
    "Features": "features",
    "Pricing": "pricing",
    "Testimonials": "testimonials",
    "CallToAction": "cta",
    "CTA": "cta",
    "Contact": "contact",
    "About": "about",
    "Gallery": "gallery",
    "FAQ": "faq",
    "Stats": "stats",
    "Team": "team",
    "Footer": "footer",
    "Navbar": "navbar",
}


def infer_file_type(file_path: str) -> FileType:
    """Classify a generated file by its path.

    Route files (``page.tsx`` / ``layout.tsx`` under an ``app/`` directory)
    are pages, stylesheets are styles, JSON manifests are config, anything
    under ``data/`` or ``lib/`` is data, and the rest are components.
    """
    path = "/" + file_path.lstrip("/")
    if "/app/" in path and (path.endswith("page.tsx") or path.endswith("layout.tsx")):
        return FileType.PAGE
    if path.endswith(".css"):
        return FileType.STYLE
    if path.endswith(".json"):
        return FileType.CONFIG
    if "/data/" in path or "/lib/" in path:
        return FileType.DATA
    return FileType.COMPONENT


def infer_section_type(file_path: str) -> str | None:
    """Best-effort section tag from the file's base name or a parent directory.

    ``src/components/Hero.tsx`` and ``src/components/Hero/index.tsx`` are
    both ``hero``. Unmatched names get no tag.
    """
    path = PurePosixPath(file_path)
    candidates = [path.name.split(".", 1)[0], *path.parent.parts]
    for candidate in candidates:
        section = SECTION_TYPES.get(candidate)
        if section is not None:
            return section
    return None


def is_editable_markup(file_path: str) -> bool:
    """Files that visual text edits may be applied to."""
    return file_path.endswith(".tsx")
