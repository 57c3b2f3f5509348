"""Tests for response formatting helpers."""

import json

from fortnox_mcp.core.constants import CHARACTER_LIMIT, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from fortnox_mcp.services.formatters import (
    TRUNCATION_NOTICE,
    build_pagination_meta,
    clamp_page_size,
    format_detail_markdown,
    format_pagination_info,
    to_json,
    truncate_response,
)


class TestTruncation:
    def test_short_text_untouched(self):
        assert truncate_response("hello") == "hello"

    def test_long_text_cut_to_limit(self):
        text = "x" * (CHARACTER_LIMIT + 500)
        result = truncate_response(text)

        assert len(result) == CHARACTER_LIMIT
        assert result.endswith(TRUNCATION_NOTICE)

    def test_to_json_truncates(self):
        data = [{"name": "a" * 100} for _ in range(500)]
        assert len(to_json(data)) <= CHARACTER_LIMIT

    def test_to_json_keeps_small_payloads_parseable(self):
        assert json.loads(to_json({"Name": "Åkesson"})) == {"Name": "Åkesson"}


class TestPagination:
    def test_clamp(self):
        assert clamp_page_size(None) == DEFAULT_PAGE_SIZE
        assert clamp_page_size(0) == 1
        assert clamp_page_size(500) == MAX_PAGE_SIZE
        assert clamp_page_size(50) == 50

    def test_meta(self):
        assert build_pagination_meta(45, 2, 20, 20) == {
            "total": 45,
            "page": 2,
            "limit": 20,
            "count": 20,
            "has_more": True,
            "total_pages": 3,
        }

    def test_meta_last_page(self):
        assert not build_pagination_meta(45, 3, 20, 5)["has_more"]

    def test_info(self):
        assert format_pagination_info(45, 2, 20, 20) == "Showing 21-40 of 45 (page 2/3)"
        assert format_pagination_info(0, 1, 20, 0) == "Showing 0 of 0 (page 1/0)"


class TestDetailMarkdown:
    def test_skips_empty_values(self):
        text = format_detail_markdown("Acme", {"City": "Stockholm", "Fax": "", "WWW": None})

        assert text.startswith("# Acme")
        assert "- **City**: Stockholm" in text
        assert "Fax" not in text
        assert "WWW" not in text
