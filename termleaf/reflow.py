"""
Reflow engine: turns a chapter and a viewport into visual lines.

``reflow`` is a pure function. Calling it twice with equal arguments gives
equal results, so layouts can be cached by (chapter index, viewport,
settings). Every VisualLine records the half-open range of logical offsets
it shows, and the lines of a chapter cover the chapter's range without gaps
or overlaps. Structural blank lines carry an empty range anchored at the
start of the block that follows them.
"""

import dataclasses
import math
import re
import unicodedata
from collections import namedtuple
from dataclasses import dataclass
from typing import Optional, Tuple

from termleaf.document import OBJECT_REPLACEMENT
from termleaf.errors import ConfigurationError, ContractViolation
from termleaf.syntax import highlight_spans


ZOOM_MODES = ("columns", "spacing")

# Glyph drawn for an inline image run
INLINE_IMAGE_GLYPH = "▣"


def char_width(ch):
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in ("W", "F"):
        return 2
    return 1


def text_width(text):
    return sum(char_width(ch) for ch in text)


@dataclass(frozen=True)
class ViewportState:
    """Terminal size in cells, text-size factor and horizontal margin."""

    width: int
    height: int
    text_size: float = 1.0
    margin: int = 0

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ContractViolation(f"viewport must be at least 1x1, got {self.width}x{self.height}")
        if self.margin < 0:
            raise ContractViolation(f"margin must not be negative, got {self.margin}")
        if not self.text_size > 0:
            raise ContractViolation(f"text size must be positive, got {self.text_size}")

    def resized(self, width, height):
        return dataclasses.replace(self, width=width, height=height)

    def zoomed(self, text_size):
        return dataclasses.replace(self, text_size=text_size)

    def with_margin(self, margin):
        return dataclasses.replace(self, margin=margin)


@dataclass(frozen=True)
class LayoutSettings:
    """
    Layout constants that are product choices rather than terminal facts.

    cell_aspect is cell height divided by cell width. cell_width is the
    assumed width of a cell in pixels, used to turn natural image sizes
    into columns.

    zoom_mode "columns" narrows the text column by the text-size factor;
    "spacing" keeps the column and inserts round(factor) - 1 blank cells
    after every glyph.
    """

    cell_aspect: float = 2.0
    cell_width: int = 10
    zoom_mode: str = "columns"
    bullet: str = "•"
    list_indent: int = 2
    code_indent: int = 2
    highlight_code: bool = True

    def __post_init__(self):
        if not self.cell_aspect > 0:
            raise ConfigurationError(f"cell_aspect must be positive, got {self.cell_aspect}")
        if self.cell_width <= 0:
            raise ConfigurationError(f"cell_width must be positive, got {self.cell_width}")
        if self.zoom_mode not in ZOOM_MODES:
            raise ConfigurationError(f"zoom_mode must be one of {ZOOM_MODES}, got {self.zoom_mode!r}")
        if char_width(self.bullet) != 1 or len(self.bullet) != 1:
            raise ConfigurationError(f"bullet must be a single narrow character, got {self.bullet!r}")

    @property
    def cell_pixels(self):
        return self.cell_width, int(round(self.cell_width * self.cell_aspect))


DEFAULT_LAYOUT = LayoutSettings()


LineGeometry = namedtuple("LineGeometry", "columns gap left usable")
LineGeometry.__doc__ = """\
columns: glyph cells available for text on one line
gap: blank cells drawn after each glyph (spacing zoom)
left: screen column where the text column starts
usable: viewport width minus both margins"""


def line_geometry(viewport, settings=DEFAULT_LAYOUT):
    usable = max(1, viewport.width - 2 * viewport.margin)
    if settings.zoom_mode == "spacing":
        gap = max(0, int(round(viewport.text_size)) - 1)
        columns = max(1, usable // (gap + 1))
    else:
        gap = 0
        columns = max(1, min(viewport.width, int(math.floor(usable / viewport.text_size))))
    left = max(0, (viewport.width - columns * (gap + 1)) // 2)
    return LineGeometry(columns, gap, left, usable)


@dataclass(frozen=True)
class StyleSpan:
    """Style applied to logical offsets [start, end)."""

    start: int
    end: int
    style: str
    color: Optional[Tuple] = None


@dataclass(frozen=True)
class ImagePlacement:
    resource_id: str
    cols: int
    rows: int
    alt: str = ""


@dataclass(frozen=True)
class VisualLine:
    """
    One line of output.

    ``text`` holds one character per logical offset starting at ``start``,
    with trailing whitespace dropped, so ``len(text) <= end - start``.
    ``prefix`` is decoration drawn before the text (centring, bullets,
    indentation) and has no logical extent.
    """

    chapter: int
    start: int
    end: int
    kind: str = "text"
    text: str = ""
    prefix: str = ""
    level: int = 0
    spans: Tuple[StyleSpan, ...] = ()
    image: Optional[ImagePlacement] = None

    @property
    def rows(self):
        return self.image.rows if self.image is not None else 1

    @property
    def empty(self):
        return self.start == self.end


_SEGMENT = re.compile(r"(\S*)(\s*)")


def wrap_offsets(text, width):
    """
    Greedy word wrap of ``text`` to ``width`` display cells.

    Returns (start, end) offsets into text, one pair per line. The pairs are
    contiguous and cover the whole text. Whitespace at a break stays on the
    line before it. Words wider than ``width`` are split.
    """
    if not text:
        return [(0, 0)]
    width = max(1, width)
    breaks = []
    used = 0
    for match in _SEGMENT.finditer(text):
        if match.start() == match.end():
            continue
        word_start, word_end = match.span(1)
        word_width = text_width(match.group(1))
        if used and used + word_width > width:
            breaks.append(word_start)
            used = 0
        if word_width > width:
            chunk = 0
            for index in range(word_start, word_end):
                cells = char_width(text[index])
                if chunk and chunk + cells > width:
                    breaks.append(index)
                    chunk = 0
                chunk += cells
            used = chunk
        else:
            used += word_width
        used += text_width(match.group(2))
    starts = [0] + breaks
    ends = breaks + [len(text)]
    return list(zip(starts, ends))


def split_offsets(text, width):
    """Split text into pieces of at most ``width`` cells, ignoring words."""
    if not text:
        return [(0, 0)]
    width = max(1, width)
    pieces = []
    start = 0
    used = 0
    for index, ch in enumerate(text):
        cells = char_width(ch)
        if used and used + cells > width:
            pieces.append((start, index))
            start = index
            used = 0
        used += cells
    pieces.append((start, len(text)))
    return pieces


def _display(text):
    """Make logical text printable: whitespace becomes spaces, trailing blanks go."""
    chars = []
    for ch in text:
        if ch == OBJECT_REPLACEMENT:
            chars.append(INLINE_IMAGE_GLYPH)
        elif ch.isspace():
            chars.append(" ")
        else:
            chars.append(ch)
    return "".join(chars).rstrip()


def _run_spans(block):
    spans = []
    offset = 0
    for run in block.runs:
        end = offset + len(run)
        if run.image is not None:
            spans.append(StyleSpan(offset, end, "image"))
        else:
            if run.strong:
                spans.append(StyleSpan(offset, end, "strong"))
            if run.emphasis:
                spans.append(StyleSpan(offset, end, "emphasis"))
            if run.code:
                spans.append(StyleSpan(offset, end, "code"))
        offset = end
    return spans


def _clip_spans(spans, start, end, base):
    """Clip block-relative spans to [start, end) and shift them by base."""
    clipped = []
    for span in spans:
        low = max(span.start, start)
        high = min(span.end, end)
        if low < high:
            clipped.append(StyleSpan(low + base, high + base, span.style, span.color))
    return tuple(clipped)


def _text_lines(chapter, block, geometry, settings):
    text = block.text
    spans = _run_spans(block)
    kind = block.kind if block.kind in ("heading", "list") else "text"
    level = getattr(block, "level", 0)

    if block.kind == "list":
        indent = " " * (settings.list_indent * block.depth)
        first_prefix = indent + settings.bullet + " "
        other_prefix = " " * len(first_prefix)
        width = max(1, geometry.columns - len(first_prefix))
    else:
        first_prefix = other_prefix = ""
        width = geometry.columns

    lines = []
    for number, (start, end) in enumerate(wrap_offsets(text, width)):
        shown = _display(text[start:end])
        prefix = first_prefix if number == 0 else other_prefix
        if block.kind == "heading" and level <= 2:
            prefix = " " * max(0, (width - text_width(shown)) // 2)
        lines.append(VisualLine(
            chapter=chapter.index,
            start=block.start + start,
            end=block.start + end,
            kind=kind,
            text=shown,
            prefix=prefix,
            level=level,
            spans=_clip_spans(spans, start, end, block.start),
        ))
    return lines


def _code_lines(chapter, block, geometry, settings):
    text = block.text
    prefix = " " * settings.code_indent
    width = max(1, geometry.columns - settings.code_indent)
    spans = []
    if settings.highlight_code:
        spans = [StyleSpan(s, e, "syntax", color) for s, e, color in highlight_spans(text, block.language)]
    spans.insert(0, StyleSpan(0, len(text), "code"))

    lines = []
    source_start = 0
    while True:
        newline = text.find("\n", source_start)
        source_end = len(text) if newline == -1 else newline + 1
        source = text[source_start:source_end].rstrip("\n")
        pieces = split_offsets(source, width)
        # the newline belongs to the last piece of its source line
        pieces[-1] = (pieces[-1][0], source_end - source_start)
        for start, end in pieces:
            start += source_start
            end += source_start
            lines.append(VisualLine(
                chapter=chapter.index,
                start=block.start + start,
                end=block.start + end,
                kind="code",
                text=_display(text[start:end]),
                prefix=prefix,
                spans=_clip_spans(spans, start, end, block.start),
            ))
        if source_end >= len(text):
            break
        source_start = source_end
    return lines


def place_image(block, viewport, settings=DEFAULT_LAYOUT):
    """
    Size an image block in cells.

    Images are shown at their natural size when it fits and shrunk to the
    text column otherwise; they are never enlarged. The row count keeps the
    natural aspect ratio given the cell aspect ratio, and tall images are
    shrunk further to fit the viewport height.
    """
    geometry = line_geometry(viewport, settings)
    text_cols = geometry.columns * (geometry.gap + 1)
    natural_cols = max(1, int(round(block.natural_width / settings.cell_width)))
    cols = min(natural_cols, text_cols)
    ratio = block.natural_height / block.natural_width / settings.cell_aspect
    rows = max(1, int(round(cols * ratio)))
    if rows > viewport.height:
        rows = viewport.height
        cols = max(1, min(cols, int(round(rows / ratio))))
    return ImagePlacement(block.resource_id, cols, rows, block.alt)


def _image_line(chapter, block, viewport, settings):
    return VisualLine(
        chapter=chapter.index,
        start=block.start,
        end=block.end,
        kind="image",
        image=place_image(block, viewport, settings),
    )


def _blank(chapter, offset):
    return VisualLine(chapter=chapter.index, start=offset, end=offset, kind="blank")


def _check(chapter, lines):
    position = 0
    for line in lines:
        if line.start != position or line.end < line.start:
            raise ContractViolation(
                f"chapter {chapter.index}: line [{line.start}, {line.end}) "
                f"does not continue from offset {position}"
            )
        position = line.end
    if position != chapter.length:
        raise ContractViolation(
            f"chapter {chapter.index}: lines end at {position}, chapter length is {chapter.length}"
        )


def reflow(chapter, viewport, settings=None):
    """Lay out ``chapter`` for ``viewport``; returns a tuple of VisualLine."""
    settings = settings or DEFAULT_LAYOUT
    geometry = line_geometry(viewport, settings)

    if not chapter.blocks:
        return (_blank(chapter, 0),)

    lines = []
    previous = None
    for block in chapter.blocks:
        if previous is not None and not (previous.kind == "list" and block.kind == "list"):
            lines.append(_blank(chapter, block.start))
        if block.kind == "image":
            lines.append(_image_line(chapter, block, viewport, settings))
        elif block.kind == "code":
            lines.extend(_code_lines(chapter, block, geometry, settings))
        else:
            lines.extend(_text_lines(chapter, block, geometry, settings))
        previous = block

    _check(chapter, lines)
    return tuple(lines)
