"""Page builder blocks for admin-managed pages."""

import copy
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.libs.codegen import slugify


class PageValidationError(Exception):
    """Raised when a page or its blocks are malformed"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


BLOCK_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "heading": {"text": "New Heading", "level": 2},
    "paragraph": {"text": "Enter your text here..."},
    "image": {"url": "", "alt": "", "caption": ""},
    "hero": {
        "title": "Welcome to Our Site",
        "subtitle": "Build amazing things together",
        "buttonText": "Get Started",
        "buttonUrl": "#",
        "backgroundImage": "",
    },
    "features": {
        "items": [
            {"title": "Feature 1", "description": "Description here", "icon": "✓"},
            {"title": "Feature 2", "description": "Description here", "icon": "✓"},
            {"title": "Feature 3", "description": "Description here", "icon": "✓"},
        ]
    },
    "testimonials": {
        "items": [
            {"quote": "Great product!", "author": "John Doe", "role": "CEO", "avatar": ""},
            {"quote": "Highly recommend!", "author": "Jane Smith", "role": "Designer", "avatar": ""},
        ]
    },
    "pricing": {
        "plans": [
            {"name": "Basic", "price": "9", "features": ["Feature 1", "Feature 2"], "buttonText": "Subscribe", "buttonUrl": "#"},
            {"name": "Pro", "price": "29", "features": ["Feature 1", "Feature 2", "Feature 3"], "buttonText": "Subscribe", "buttonUrl": "#", "highlighted": True},
        ]
    },
    "faq": {
        "items": [
            {"question": "Question 1?", "answer": "Answer here"},
            {"question": "Question 2?", "answer": "Answer here"},
        ]
    },
    "video": {"url": "", "caption": ""},
    "columns": {
        "count": 2,
        "columns": [
            {"content": "Column 1 content"},
            {"content": "Column 2 content"},
        ],
    },
    "divider": {"style": "solid", "width": "100%"},
    "cta": {"title": "Call to Action", "description": "", "buttonText": "Get Started", "buttonUrl": "#"},
    "html": {"html": "<div>Custom HTML</div>"},
}

BLOCK_TYPES = list(BLOCK_DEFAULTS)


class Block(BaseModel):
    """A single content block on a page"""
    id: str
    type: str
    content: Dict[str, Any] = Field(default_factory=dict)


def default_content(block_type: str) -> Dict[str, Any]:
    if block_type not in BLOCK_DEFAULTS:
        raise PageValidationError(f"Unknown block type: {block_type}")
    return copy.deepcopy(BLOCK_DEFAULTS[block_type])


def new_block(block_type: str, block_id: Optional[str] = None) -> Block:
    """Create a block with default content."""
    return Block(
        id=block_id or f"block-{int(time.time() * 1000)}",
        type=block_type,
        content=default_content(block_type),
    )


def normalize_blocks(blocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Validate a page's block list.

    Blocks without content get the type's defaults; ids must be unique.
    """
    seen = set()
    normalized = []
    for index, raw in enumerate(blocks):
        block_type = raw.get("type")
        if block_type not in BLOCK_DEFAULTS:
            raise PageValidationError(f"Block {index}: unknown type '{block_type}'")
        block_id = raw.get("id") or f"block-{index + 1}"
        if block_id in seen:
            raise PageValidationError(f"Block {index}: duplicate id '{block_id}'")
        seen.add(block_id)
        content = raw.get("content") or default_content(block_type)
        if not isinstance(content, dict):
            raise PageValidationError(f"Block {index}: content must be an object")
        normalized.append(Block(id=block_id, type=block_type, content=content).model_dump())
    return normalized


def move_block(blocks: List[Dict[str, Any]], index: int, direction: str) -> List[Dict[str, Any]]:
    """Swap the block at `index` with its neighbour. Out-of-range moves are no-ops."""
    if direction not in ("up", "down"):
        raise PageValidationError(f"Invalid direction: {direction}")
    new_index = index - 1 if direction == "up" else index + 1
    moved = list(blocks)
    if index < 0 or index >= len(blocks) or new_index < 0 or new_index >= len(blocks):
        return moved
    moved[index], moved[new_index] = moved[new_index], moved[index]
    return moved


def page_slug(title: str, slug: Optional[str] = None) -> str:
    """Use the given slug or derive one from the title."""
    result = slugify(slug or title)
    if not result:
        raise PageValidationError("Page needs a title or slug")
    return result
