"""Test configuration and fixtures for termleaf tests."""

import os
from io import BytesIO

import pytest
from PIL import Image

from termleaf.document import Chapter, Document, Heading, ImageBlock, Paragraph
from termleaf.reflow import ViewportState


# Three paragraphs whose wrapping at width 40 is worked out by hand in test_reflow
PARAGRAPHS = (
    "The quick brown fox jumps over the lazy dog near the river bank.",
    "Pack my box with five dozen liquor jugs.",
    "Sphinx of black quartz, judge my vow. How vexingly quick daft zebras jump!",
)


def numbered_chapter(index, count=10):
    """A chapter of ``count`` one-line paragraphs, 25 characters each."""
    return Chapter(index, [Paragraph(f"Paragraph {n} of chapter {index}.") for n in range(count)])


class MemoryProgress:
    def __init__(self, saved=None):
        self.saved = dict(saved or {})

    def load(self, book_id):
        return self.saved.get(book_id)

    def save(self, book_id, progress):
        self.saved[book_id] = progress


class MemoryAnnotations:
    def __init__(self, saved=None):
        self.saved = dict(saved or {})

    def load(self, book_id):
        return list(self.saved.get(book_id, []))

    def save(self, book_id, annotations):
        self.saved[book_id] = list(annotations)


class MemoryImages:
    def __init__(self, images=None):
        self.images = dict(images or {})
        self.fetched = []

    def fetch(self, resource_id):
        self.fetched.append(resource_id)
        return self.images[resource_id]


class FakeDictionary:
    def __init__(self, definitions=None, error=None):
        self.definitions = definitions or {}
        self.error = error
        self.asked = []

    def define(self, word):
        self.asked.append(word)
        if self.error is not None:
            raise self.error
        return self.definitions.get(word.lower())


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Point the configuration directory at a temporary directory."""
    path = tmp_path / "config"
    path.mkdir()
    monkeypatch.setenv("TERMLEAF_CONFIG_DIR", str(path))
    return path


@pytest.fixture
def three_paragraphs():
    return Chapter(0, [Paragraph(text) for text in PARAGRAPHS])


@pytest.fixture
def sample_document():
    """Three chapters, each a heading followed by the three paragraphs."""
    chapters = []
    for index in range(3):
        blocks = [Heading(1, f"Chapter {index + 1}")]
        blocks.extend(Paragraph(text) for text in PARAGRAPHS)
        chapters.append(Chapter(index, blocks, title=f"Chapter {index + 1}"))
    return Document(chapters, title="Sample")


@pytest.fixture
def numbered_document():
    """Three chapters of ten single-line paragraphs: 19 lines each at width 40."""
    return Document([numbered_chapter(index) for index in range(3)])


@pytest.fixture
def small_viewport():
    return ViewportState(width=40, height=5)


@pytest.fixture
def png_bytes():
    """A 40x20 red PNG."""
    buffer = BytesIO()
    Image.new("RGB", (40, 20), (255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def noisy_png_bytes():
    """A 64x64 PNG of random pixels, large enough to need several Kitty chunks."""
    buffer = BytesIO()
    Image.frombytes("RGB", (64, 64), os.urandom(64 * 64 * 3)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def image_chapter():
    return Chapter(0, [
        Paragraph("Before the figure."),
        ImageBlock("figure.png", 400, 200, alt="A red square"),
        Paragraph("After the figure."),
    ])


@pytest.fixture
def memory_progress():
    return MemoryProgress()


@pytest.fixture
def memory_annotations():
    return MemoryAnnotations()


@pytest.fixture
def markdown_book(tmp_path, png_bytes):
    """A small Markdown-lite book with an image next to it."""
    (tmp_path / "figure.png").write_bytes(png_bytes)
    path = tmp_path / "sample_book.md"
    path.write_text(
        "# First Steps\n"
        "\n"
        "The quick brown fox jumps over the lazy dog.\n"
        "\n"
        "![A red square](figure.png)\n"
        "\n"
        "## Details\n"
        "\n"
        "- one\n"
        "- two\n"
        "\n"
        "# Second Chapter\n"
        "\n"
        "Pack my box with five dozen liquor jugs.\n",
        encoding="utf-8",
    )
    return path
