"""Display formatting for assistant answers.

The model answers in loosely structured Markdown. parse_assistant_content
turns that into heading, paragraph and list blocks the UI can render
consistently; render_markdown turns the blocks back into clean Markdown.
"""

import re
from typing import List, Optional

from lawbot.models import HeadingBlock, ListBlock, ParagraphBlock, ParsedBlock

HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
BULLET_RE = re.compile(r"^[-*+]\s+(.*)$")
ORDERED_RE = re.compile(r"^\d+\.\s+(.*)$")
BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
ITALIC_RE = re.compile(r"\*(.+?)\*")


def strip_emphasis(text: str) -> str:
    return ITALIC_RE.sub(r"\1", BOLD_RE.sub(r"\1", text))


def parse_assistant_content(text: str) -> List[ParsedBlock]:
    """Split an answer into heading, paragraph and list blocks.

    Args:
        text: Markdown-flavoured answer text.

    Returns:
        Blocks in document order, with emphasis markers removed.
    """
    blocks: List[ParsedBlock] = []
    paragraph: List[str] = []
    items: Optional[List[str]] = None

    def flush_paragraph() -> None:
        nonlocal paragraph
        if paragraph:
            blocks.append(ParagraphBlock(text=strip_emphasis(" ".join(paragraph))))
            paragraph = []

    def flush_list() -> None:
        nonlocal items
        if items:
            blocks.append(ListBlock(items=[strip_emphasis(i) for i in items]))
        items = None

    for raw_line in re.split(r"\r?\n", text or ""):
        line = raw_line.strip()

        if not line:
            flush_paragraph()
            flush_list()
            continue

        heading = HEADING_RE.match(line)
        if heading:
            flush_paragraph()
            flush_list()
            heading_text = strip_emphasis(heading.group(2)).strip()
            if heading_text:
                blocks.append(HeadingBlock(text=heading_text))
            continue

        item = BULLET_RE.match(line) or ORDERED_RE.match(line)
        if item:
            flush_paragraph()
            if items is None:
                items = []
            items.append(item.group(1).strip())
            continue

        # Continuation line of the open list item, otherwise paragraph text
        if items:
            items[-1] = f"{items[-1]} {line}"
        else:
            paragraph.append(line)

    flush_paragraph()
    flush_list()
    return blocks


def render_markdown(blocks: List[ParsedBlock]) -> str:
    parts = []
    for block in blocks:
        if isinstance(block, HeadingBlock):
            parts.append(f"#### {block.text}")
        elif isinstance(block, ListBlock):
            parts.append("\n".join(f"- {item}" for item in block.items))
        else:
            parts.append(block.text)
    return "\n\n".join(parts)
