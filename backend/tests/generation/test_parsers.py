"""Tests for model output parsers."""

import json

import pytest

from sitegen.core.exceptions import BlueprintParseError, DesignSystemParseError
from sitegen.generation.backend import FAKE_BLUEPRINT, FAKE_DESIGN_SYSTEM
from sitegen.generation.parsers import (
    extract_completed_blocks,
    extract_component_name,
    extract_json_from_response,
    find_open_block_path,
    parse_blueprint,
    parse_component_output,
    parse_design_system,
)

pytestmark = pytest.mark.unit


class TestComponentBlocks:
    def test_parse_component_output(self):
        raw = (
            "Here you go:\n"
            "```tsx:src/components/Hero.tsx\nexport default function Hero() {}\n```\n"
            "```css:./src/app/globals.css\nbody {}\n```\n"
        )
        blocks = parse_component_output(raw)
        assert [(b.language, b.file_path) for b in blocks] == [
            ("tsx", "src/components/Hero.tsx"),
            ("css", "src/app/globals.css"),
        ]
        assert blocks[0].content == "export default function Hero() {}"

    def test_empty_blocks_are_skipped(self):
        assert parse_component_output("```tsx:src/Empty.tsx\n   \n```") == []

    def test_extract_completed_blocks_keeps_unfinished_tail(self):
        buffer = "```tsx:src/A.tsx\nA\n```\n```tsx:src/B.tsx\nhalf of B"
        blocks, remaining = extract_completed_blocks(buffer)
        assert [b.file_path for b in blocks] == ["src/A.tsx"]
        assert remaining == "\n```tsx:src/B.tsx\nhalf of B"

    def test_extract_completed_blocks_with_nothing_finished(self):
        blocks, remaining = extract_completed_blocks("```tsx:src/A.tsx\nA")
        assert blocks == []
        assert remaining == "```tsx:src/A.tsx\nA"

    def test_find_open_block_path_waits_for_full_header(self):
        assert find_open_block_path("```tsx:src/compon") is None
        assert find_open_block_path("```tsx:src/components/Hero.tsx\n<h1>") == "src/components/Hero.tsx"

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("src/components/Hero.tsx", "Hero"),
            ("src/lib/utils.ts", "utils"),
            ("src/app/globals.css", "globals"),
            ("package.json", None),
        ],
    )
    def test_extract_component_name(self, path, expected):
        assert extract_component_name(path) == expected


class TestJsonStages:
    def test_extract_json_from_fence(self):
        assert extract_json_from_response('Sure!\n```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_extract_json_from_prose(self):
        assert extract_json_from_response('The result is {"a": {"b": 2}} as requested.') == '{"a": {"b": 2}}'

    def test_parse_design_system(self):
        design = parse_design_system(json.dumps(FAKE_DESIGN_SYSTEM))
        assert design.typography.heading_font == "Inter"
        assert design.colors.primary["500"] == "#2563eb"

    def test_parse_design_system_bad_json(self):
        with pytest.raises(DesignSystemParseError, match="Failed to parse design system JSON"):
            parse_design_system("not json at all")

    def test_parse_design_system_missing_fields(self):
        with pytest.raises(DesignSystemParseError, match="typography"):
            parse_design_system('{"colors": {}}')

    def test_parse_blueprint(self):
        blueprint = parse_blueprint("```json\n" + json.dumps(FAKE_BLUEPRINT) + "\n```")
        assert blueprint.pages[0].path == "/"
        assert blueprint.shared_components == ["Navbar", "Footer"]
        assert blueprint.expected_file_count() == 5

    def test_parse_blueprint_requires_pages(self):
        with pytest.raises(BlueprintParseError, match="pages"):
            parse_blueprint('{"pages": [], "sharedComponents": []}')
