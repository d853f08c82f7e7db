from lawbot.models import HeadingBlock, ListBlock, ParagraphBlock
from lawbot.rag.formatter import parse_assistant_content, render_markdown, strip_emphasis


def test_heading_paragraph_and_list():
    blocks = parse_assistant_content("### Heading\nSome para.\n- item one\n- item two")

    assert blocks == [
        HeadingBlock(text="Heading"),
        ParagraphBlock(text="Some para."),
        ListBlock(items=["item one", "item two"]),
    ]


def test_emphasis_markers_are_stripped():
    assert parse_assistant_content("**bold** and *italic*") == [
        ParagraphBlock(text="bold and italic")
    ]


def test_strip_emphasis_is_non_greedy():
    assert strip_emphasis("**a** then **b**") == "a then b"
    assert strip_emphasis("*x* and **y**") == "x and y"
    assert strip_emphasis("2 * 3 = 6") == "2 * 3 = 6"


def test_continuation_lines_join_the_last_list_item():
    text = (
        "### Practical guidance\n"
        "1. File an FIR at the nearest\n"
        "police station.\n"
        "2. Keep a copy of the **FIR**.\n"
        "\n"
        "After the list\n"
        "comes a paragraph."
    )

    assert parse_assistant_content(text) == [
        HeadingBlock(text="Practical guidance"),
        ListBlock(items=["File an FIR at the nearest police station.", "Keep a copy of the FIR."]),
        ParagraphBlock(text="After the list comes a paragraph."),
    ]


def test_mixed_bullet_markers_and_crlf():
    text = "* first\r\n+ second\r\n- third\r\n"

    assert parse_assistant_content(text) == [ListBlock(items=["first", "second", "third"])]


def test_empty_heading_is_dropped_and_blank_input_is_empty():
    assert parse_assistant_content("### **  **\n## **Disclaimer**") == [HeadingBlock(text="Disclaimer")]
    assert parse_assistant_content("") == []
    assert parse_assistant_content("\n\n   \n") == []


def test_hash_without_space_is_paragraph_text():
    assert parse_assistant_content("#hashtag") == [ParagraphBlock(text="#hashtag")]


def test_parse_is_deterministic():
    text = "### A\n- x\n\npara"

    assert parse_assistant_content(text) == parse_assistant_content(text)


def test_render_markdown():
    blocks = parse_assistant_content("### Relevant sections\n- IPC 378\n- BNS 303\n\nSee above.")

    assert render_markdown(blocks) == "#### Relevant sections\n\n- IPC 378\n- BNS 303\n\nSee above."
