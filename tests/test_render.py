"""Tests for frame rendering."""

import pytest

from termleaf.annotations import Annotation, AnnotationKind
from termleaf.document import Chapter, Heading, ImageBlock, Paragraph, Run
from termleaf.errors import ConfigurationError
from termleaf.graphics import GraphicsProtocol, TerminalCapabilities
from termleaf.reflow import ViewportState, line_geometry, reflow
from termleaf.render import CLEAR_LINE, Overlay, Renderer, goto

from conftest import MemoryImages


def render(renderer, chapter, viewport, overlay=None):
    lines = reflow(chapter, viewport)
    return renderer.render(lines, viewport, line_geometry(viewport), overlay)


class TestTextFrames:
    """Text lines are positioned and drawn verbatim."""

    def test_every_row_is_cleared(self, three_paragraphs):
        viewport = ViewportState(40, 10)
        frame = render(Renderer(TerminalCapabilities()), three_paragraphs, viewport)
        for row in range(10):
            assert goto(row, 0) + CLEAR_LINE in frame, f"Row {row} is not cleared"

    def test_text_is_verbatim(self, three_paragraphs):
        viewport = ViewportState(40, 10)
        frame = render(Renderer(TerminalCapabilities()), three_paragraphs, viewport)
        assert "Pack my box with five dozen liquor jugs." in frame
        assert "How vexingly quick daft zebras jump!" in frame

    def test_heading_is_bold(self):
        chapter = Chapter(0, [Heading(1, "Title")])
        frame = render(Renderer(TerminalCapabilities()), chapter, ViewportState(40, 5))
        assert "\x1b[0;1mTitle" in frame

    def test_message_on_last_row(self, three_paragraphs):
        viewport = ViewportState(40, 10)
        frame = render(Renderer(TerminalCapabilities()), three_paragraphs, viewport,
                       Overlay(message="End of book"))
        assert goto(9, 0) + CLEAR_LINE + "\x1b[7mEnd of book" in frame

    def test_lookup_box(self, three_paragraphs):
        viewport = ViewportState(60, 12)
        frame = render(Renderer(TerminalCapabilities()), three_paragraphs, viewport,
                       Overlay(lookup=("fox", "A small wild dog.")))
        assert " fox " in frame
        assert "A small wild dog." in frame

    def test_list_box_marks_selected_entry(self, three_paragraphs):
        viewport = ViewportState(60, 12)
        labels = tuple(f"Chapter {n}" for n in range(1, 4))
        frame = render(Renderer(TerminalCapabilities()), three_paragraphs, viewport,
                       Overlay(panel=("Table of Contents", labels, 1)))
        assert " Table of Contents " in frame
        assert "\x1b[7m" + "Chapter 2".ljust(54) in frame, "Selected entry is not reversed"
        assert "Chapter 3" in frame

    def test_list_box_skipped_on_tiny_screen(self, three_paragraphs):
        viewport = ViewportState(8, 3)
        frame = render(Renderer(TerminalCapabilities()), three_paragraphs, viewport,
                       Overlay(panel=("Table of Contents", ("Chapter 1",), 0)))
        assert "Table of Contents" not in frame


class TestThemes:
    """Decoration colours follow the selected theme."""

    def test_code_colour_switches(self):
        renderer = Renderer(TerminalCapabilities(truecolor=True))
        line = reflow(Chapter(0, [Paragraph([Run("x = 1", code=True)])]), ViewportState(40, 5))[0]
        assert renderer.line_styles(line, Overlay())[0].fg == (230, 180, 120)
        renderer.set_theme("light")
        assert renderer.line_styles(line, Overlay())[0].fg == (140, 70, 0)

    def test_unknown_theme(self):
        with pytest.raises(ConfigurationError):
            Renderer(TerminalCapabilities()).set_theme("sepia")


class TestOverlayStyles:
    """Annotations, search and cursor are painted after layout."""

    def setup_method(self):
        self.renderer = Renderer(TerminalCapabilities())
        chapter = Chapter(0, [Paragraph([Run("plain "), Run("bold", strong=True)])])
        self.line = reflow(chapter, ViewportState(40, 5))[0]

    def test_run_styles(self):
        styles = self.renderer.line_styles(self.line, Overlay())
        assert not styles[0].bold
        assert all(style.bold for style in styles[6:10])

    def test_overlapping_annotations(self):
        overlay = Overlay(annotations=(
            Annotation("a", 0, 0, 5, AnnotationKind.HIGHLIGHT),
            Annotation("b", 0, 3, 8, AnnotationKind.NOTE, "n"),
        ))
        styles = self.renderer.line_styles(self.line, overlay)
        settings = self.renderer.settings
        assert styles[1].bg == settings.highlight_color
        assert styles[4].bg == settings.note_color and styles[4].underline
        assert styles[9].bg is None

    def test_cursor_and_search(self):
        overlay = Overlay(search=((6, 10),), cursor=(0, 5))
        styles = self.renderer.line_styles(self.line, overlay)
        assert styles[0].reverse and styles[0].underline
        assert styles[7].bg == self.renderer.settings.search_color

    def test_highlight_colour_reaches_output(self):
        overlay = Overlay(annotations=(Annotation("a", 0, 0, 5, AnnotationKind.HIGHLIGHT),))
        viewport = ViewportState(40, 5)
        out = self.renderer.render([self.line], viewport, line_geometry(viewport), overlay)
        assert "48;2;200;170;80" in out


class TestImageFrames:
    """Image lines go through the session's protocol."""

    def test_none_capability_draws_alt_text(self, image_chapter):
        renderer = Renderer(TerminalCapabilities(GraphicsProtocol.NONE))
        frame = render(renderer, image_chapter, ViewportState(80, 24))
        assert "[image: A red square]" in frame
        for escape in ("\x1b_G", "\x1b]1337", "\x1bPq"):
            assert escape not in frame, f"Raw image escape {escape!r} in placeholder output"

    def test_short_image_placeholder_names_image(self):
        chapter = Chapter(0, [ImageBlock("banner.png", 400, 40, alt="Banner")])
        lines = reflow(chapter, ViewportState(80, 24))
        assert (lines[0].image.cols, lines[0].image.rows) == (40, 2)
        frame = render(Renderer(TerminalCapabilities(GraphicsProtocol.NONE)), chapter, ViewportState(80, 24))
        assert "[image: Banner]" in frame

    def test_narrow_image_placeholder_is_centred(self):
        chapter = Chapter(0, [ImageBlock("dot.png", 40, 20, alt="A red square")])
        frame = render(Renderer(TerminalCapabilities(GraphicsProtocol.NONE)), chapter, ViewportState(80, 24))
        label = "[image: A red square]"
        assert goto(0, (80 - len(label)) // 2) + label in frame

    def test_kitty_frame(self, image_chapter, png_bytes):
        images = MemoryImages({"figure.png": png_bytes})
        renderer = Renderer(TerminalCapabilities(GraphicsProtocol.KITTY), images)
        frame = render(renderer, image_chapter, ViewportState(80, 24))
        assert frame.startswith("\x1b_Ga=d,d=A,q=2\x1b\\"), "Kitty frames start by clearing images"
        assert "\x1b_Ga=T,f=100" in frame
        assert "After the figure." in frame

    def test_bad_image_does_not_abort_frame(self, image_chapter):
        images = MemoryImages({"figure.png": b"broken"})
        renderer = Renderer(TerminalCapabilities(GraphicsProtocol.SIXEL), images)
        frame = render(renderer, image_chapter, ViewportState(80, 24))
        assert "[image: A red square]" in frame
        assert "After the figure." in frame

    def test_missing_resource_draws_placeholder(self, image_chapter):
        renderer = Renderer(TerminalCapabilities(GraphicsProtocol.ITERM2), MemoryImages())
        frame = render(renderer, image_chapter, ViewportState(80, 24))
        assert "[image: A red square]" in frame

    def test_encodes_are_cached(self, image_chapter, png_bytes):
        images = MemoryImages({"figure.png": png_bytes})
        renderer = Renderer(TerminalCapabilities(GraphicsProtocol.KITTY), images)
        viewport = ViewportState(80, 24)
        render(renderer, image_chapter, viewport)
        render(renderer, image_chapter, viewport)
        assert images.fetched == ["figure.png"]
