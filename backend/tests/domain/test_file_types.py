"""Tests for generated file classification."""

import pytest

from sitegen.domain.file_types import FileType, infer_file_type, infer_section_type, is_editable_markup

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "path,expected",
    [
        ("src/app/page.tsx", FileType.PAGE),
        ("src/app/about/page.tsx", FileType.PAGE),
        ("src/app/layout.tsx", FileType.PAGE),
        ("src/app/globals.css", FileType.STYLE),
        ("package.json", FileType.CONFIG),
        ("src/lib/design-system.json", FileType.CONFIG),
        ("src/lib/utils.ts", FileType.DATA),
        ("src/data/products.ts", FileType.DATA),
        ("src/components/Hero.tsx", FileType.COMPONENT),
        ("tailwind.config.js", FileType.COMPONENT),
    ],
)
def test_infer_file_type(path, expected):
    assert infer_file_type(path) == expected


def test_page_outside_app_dir_is_a_component():
    assert infer_file_type("src/components/page.tsx") == FileType.COMPONENT


@pytest.mark.parametrize(
    "path,expected",
    [
        ("src/components/Hero.tsx", "hero"),
        ("src/components/CallToAction.tsx", "cta"),
        ("src/components/Navbar.tsx", "navbar"),
        ("src/components/Pricing/index.tsx", "pricing"),
        ("Footer.tsx", "footer"),
    ],
)
def test_infer_section_type(path, expected):
    assert infer_section_type(path) == expected


def test_unknown_section_is_none():
    assert infer_section_type("src/components/Widget.tsx") is None
    assert infer_section_type("package.json") is None


def test_editable_markup_is_tsx_only():
    assert is_editable_markup("src/components/Hero.tsx")
    assert not is_editable_markup("src/app/globals.css")
    assert not is_editable_markup("src/lib/utils.ts")
