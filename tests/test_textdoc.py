"""Tests for the Markdown-lite loader."""

from termleaf.document import CodeBlock, Heading, ImageBlock, ListItem, Paragraph, Run
from termleaf.textdoc import FALLBACK_IMAGE_SIZE, FileImages, load, loads, parse_inline


class TestParseInline:
    """Inline markup becomes styled runs."""

    def test_styles(self):
        assert parse_inline("a *b* `c` **d**") == [
            Run("a "),
            Run("b", emphasis=True),
            Run(" "),
            Run("c", code=True),
            Run(" "),
            Run("d", strong=True),
        ]

    def test_underscore_emphasis(self):
        assert parse_inline("_word_ snake_case") == [
            Run("word", emphasis=True),
            Run(" snake_case"),
        ]

    def test_inline_image(self):
        runs = parse_inline("see ![dot](dot.png) here")
        assert runs[1] == Run.image_ref("dot.png", "dot")
        assert runs[2] == Run(" here")


class TestLoads:
    """Block structure and chapters."""

    def test_chapters_and_blocks(self):
        document = loads(
            "# One\n\nHello **world**.\n\n## Sub\n\n- a\n  - b\n\n"
            "# Two\n\n```python\nx = 1\n```\n"
        )
        assert len(document) == 2
        first, second = document.chapters
        assert first.title == "One"
        assert [type(block) for block in first.blocks] == [
            Heading, Paragraph, Heading, ListItem, ListItem,
        ]
        assert first.blocks[1].runs == (Run("Hello "), Run("world", strong=True), Run("."))
        assert first.blocks[4].depth == 1
        assert second.blocks[1] == CodeBlock("x = 1", "python", start=3, end=8)

    def test_paragraph_lines_are_joined(self):
        document = loads("first line\nsecond line\n")
        assert document.chapter(0).blocks[0].text == "first line second line"

    def test_text_before_first_heading(self):
        document = loads("preface\n\n# Real\n\nbody\n")
        assert len(document) == 2
        assert document.chapter(0).title is None

    def test_frontmatter_title(self):
        document = loads("---\ntitle: \"My Book\"\nauthor: me\n---\n# A\n\ntext\n")
        assert document.title == "My Book"
        assert document.chapter(0).title == "A"

    def test_empty_text_gives_one_empty_chapter(self):
        document = loads("")
        assert len(document) == 1
        assert document.chapter(0).length == 0

    def test_missing_image_uses_fallback_size(self, tmp_path):
        document = loads("![gone](missing.png)\n", base_dir=str(tmp_path))
        block = document.chapter(0).blocks[0]
        assert isinstance(block, ImageBlock)
        assert (block.natural_width, block.natural_height) == FALLBACK_IMAGE_SIZE


class TestLoad:
    """Loading from files."""

    def test_load_reads_image_sizes(self, markdown_book):
        document = load(str(markdown_book))
        assert document.title == "Sample Book"
        images = [b for b in document.chapter(0).blocks if isinstance(b, ImageBlock)]
        assert [(i.resource_id, i.natural_width, i.natural_height, i.alt) for i in images] == [
            ("figure.png", 40, 20, "A red square"),
        ]
        assert document.chapter(1).title == "Second Chapter"

    def test_file_images(self, markdown_book, png_bytes):
        images = FileImages(str(markdown_book.parent))
        assert images.fetch("figure.png") == png_bytes
