"""Response formatting helpers for tool output."""

import json
import math
from typing import Any

from fortnox_mcp.core.constants import CHARACTER_LIMIT, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

TRUNCATION_NOTICE = (
    "\n\n---\n*Response truncated. Use filters or pagination to see more results.*"
)


def truncate_response(text: str, limit: int = CHARACTER_LIMIT) -> str:
    """Cut text to ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[: max(0, limit - len(TRUNCATION_NOTICE))] + TRUNCATION_NOTICE


def clamp_page_size(limit: int | None) -> int:
    """Keep a requested page size within what Fortnox accepts."""
    if limit is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(limit, MAX_PAGE_SIZE))


def build_pagination_meta(total: int, page: int, limit: int, count: int) -> dict[str, Any]:
    """Build pagination metadata for structured output."""
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "count": count,
        "has_more": page < total_pages,
        "total_pages": total_pages,
    }


def format_pagination_info(total: int, page: int, limit: int, showing: int) -> str:
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    if showing == 0:
        return f"Showing 0 of {total} (page {page}/{total_pages})"
    start = (page - 1) * limit + 1
    end = start + showing - 1
    return f"Showing {start}-{end} of {total} (page {page}/{total_pages})"


def to_json(data: Any) -> str:
    """Serialize tool output, truncated to the response limit."""
    return truncate_response(json.dumps(data, indent=2, ensure_ascii=False))


def format_detail_markdown(title: str, fields: dict[str, Any]) -> str:
    """Render a single record as a markdown bullet list, skipping empty values."""
    lines = [f"# {title}", ""]
    for label, value in fields.items():
        if value in (None, ""):
            continue
        lines.append(f"- **{label}**: {value}")
    return truncate_response("\n".join(lines))
