"""
Frame renderer.

A frame is one string of terminal output: every row of the viewport is
addressed, cleared and redrawn. Text is written with SGR attributes built
from run styles plus the overlay pass (annotations, search matches,
selection, cursor). Image lines are encoded with the session's graphics
protocol; encodes for a frame may run on a worker pool but the frame is only
assembled once all of them are done.
"""

import logging
import textwrap
from collections import OrderedDict, namedtuple
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import groupby
from typing import Optional, Tuple

from termleaf.annotations import AnnotationKind
from termleaf.config import THEMES, Settings
from termleaf.errors import ConfigurationError
from termleaf.graphics import (
    DEFAULT_CELL_PIXELS,
    GraphicsProtocol,
    bg_sgr,
    encode_image,
    fg_sgr,
    kitty_clear,
)

logger = logging.getLogger(__name__)


CLEAR_LINE = "\x1b[2K"
RESET = "\x1b[0m"

# colorscheme
# (dark, light) theme colours for text decorations
CODE_COLOR = ((230, 180, 120), (140, 70, 0))
IMAGE_COLOR = ((150, 150, 150), (110, 110, 110))


def goto(row, col):
    return f"\x1b[{row + 1};{col + 1}H"


Style = namedtuple("Style", "bold italic underline reverse fg bg")
PLAIN = Style(False, False, False, False, None, None)


@dataclass(frozen=True)
class Overlay:
    """Everything drawn on top of the laid-out text for one frame."""

    annotations: Tuple = ()
    search: Tuple[Tuple[int, int], ...] = ()
    selection: Optional[Tuple[int, int]] = None
    cursor: Optional[Tuple[int, int]] = None
    message: Optional[str] = None
    lookup: Optional[Tuple[str, str]] = None
    # (title, entry labels, selected index) of an open list view
    panel: Optional[Tuple[str, Tuple[str, ...], int]] = None


class Renderer:
    def __init__(self, capabilities, images=None, protocol=None, settings=None, workers=2):
        self.capabilities = capabilities
        self.images = images
        self.protocol = protocol if protocol is not None else capabilities.graphics
        self.settings = settings or Settings()
        self.truecolor = capabilities.truecolor
        self.cell_pixels = capabilities.cell_pixels or DEFAULT_CELL_PIXELS
        self.workers = workers
        self.set_theme(self.settings.theme)
        self._cache = OrderedDict()
        self._cache_size = 64
        self._executor = None

    def set_theme(self, theme):
        """Switch between the dark and light decoration colours."""
        if theme not in THEMES:
            raise ConfigurationError(f"theme must be one of {THEMES}, got {theme!r}")
        self.theme = theme
        self._theme = THEMES.index(theme)

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # -- images -------------------------------------------------------------

    def _encode(self, placement):
        data = None
        needs_bytes = (
            self.protocol is not GraphicsProtocol.NONE
            or self.settings.image_fallback == "halfblocks"
        )
        if needs_bytes and self.images is not None:
            try:
                data = self.images.fetch(placement.resource_id)
            except (OSError, KeyError) as exc:
                logger.warning("Cannot fetch image %r: %s", placement.resource_id, exc)
        return encode_image(
            self.protocol,
            data,
            placement,
            cell_pixels=self.cell_pixels,
            fallback=self.settings.image_fallback,
            truecolor=self.truecolor,
        )

    def encode_all(self, placements):
        """Encode every placement, waiting for all of them, and return a dict."""
        result = {}
        missing = []
        for placement in dict.fromkeys(placements):
            if placement in self._cache:
                self._cache.move_to_end(placement)
                result[placement] = self._cache[placement]
            else:
                missing.append(placement)

        if len(missing) > 1 and self.workers > 1:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.workers, thread_name_prefix="termleaf-image"
                )
            encoded = list(self._executor.map(self._encode, missing))
        else:
            encoded = [self._encode(placement) for placement in missing]

        for placement, image in zip(missing, encoded):
            result[placement] = image
            self._cache[placement] = image
            while len(self._cache) > self._cache_size:
                self._cache.popitem(last=False)
        return result

    def _draw_image(self, row, placement, image, viewport):
        width = image.width or placement.cols
        col = max(0, (viewport.width - width) // 2)
        out = []
        for screen_row in range(row, min(row + placement.rows, viewport.height)):
            out.append(goto(screen_row, 0) + CLEAR_LINE)
        if image.escape:
            out.append(goto(row, col) + image.escape)
        else:
            for number, text in enumerate(image.lines):
                if row + number >= viewport.height:
                    break
                if image.width:
                    text = text[:viewport.width]
                out.append(goto(row + number, col) + text + RESET)
        return "".join(out)

    # -- text ---------------------------------------------------------------

    def _sgr(self, style):
        codes = ["0"]
        if style.bold:
            codes.append("1")
        if style.italic:
            codes.append("3")
        if style.underline:
            codes.append("4")
        if style.reverse:
            codes.append("7")
        if style.fg is not None:
            codes.append(fg_sgr(style.fg, self.truecolor))
        if style.bg is not None:
            codes.append(bg_sgr(style.bg, self.truecolor))
        return "\x1b[" + ";".join(codes) + "m"

    def line_styles(self, line, overlay):
        """Per-character styles of a text line after every overlay is applied."""
        count = len(line.text)
        base = PLAIN._replace(bold=True) if line.kind == "heading" else PLAIN
        styles = [base] * count

        def paint(start, end, **changes):
            low = max(start, line.start) - line.start
            high = min(end, line.start + count) - line.start
            for index in range(low, high):
                styles[index] = styles[index]._replace(**changes)

        for span in line.spans:
            if span.style == "strong":
                paint(span.start, span.end, bold=True)
            elif span.style == "emphasis":
                paint(span.start, span.end, italic=True)
            elif span.style == "code":
                paint(span.start, span.end, fg=CODE_COLOR[self._theme])
            elif span.style == "syntax":
                paint(span.start, span.end, fg=span.color[self._theme])
            elif span.style == "image":
                paint(span.start, span.end, fg=IMAGE_COLOR[self._theme])

        for annotation in overlay.annotations:
            if annotation.kind is AnnotationKind.NOTE:
                paint(annotation.start, annotation.end,
                      bg=tuple(self.settings.note_color), underline=True)
            else:
                paint(annotation.start, annotation.end, bg=tuple(self.settings.highlight_color))
        for start, end in overlay.search:
            paint(start, end, bg=tuple(self.settings.search_color))
        if overlay.selection is not None:
            paint(*overlay.selection, reverse=True)
        if overlay.cursor is not None:
            paint(*overlay.cursor, reverse=True, underline=True)
        return styles

    def _draw_text(self, line, geometry, overlay):
        gap = " " * geometry.gap
        out = []
        if line.prefix:
            out.append(RESET + "".join(ch + gap for ch in line.prefix))
        styles = self.line_styles(line, overlay)
        position = 0
        for style, group in groupby(styles):
            length = len(list(group))
            chunk = line.text[position:position + length]
            position += length
            out.append(self._sgr(style) + "".join(ch + gap for ch in chunk))
        if out:
            out.append(RESET)
        return "".join(out)

    # -- overlays -----------------------------------------------------------

    def _lookup_box(self, word, definition, viewport):
        width = min(viewport.width, 60)
        if width < 6 or viewport.height < 3:
            return ""
        inner = width - 4
        body = []
        for paragraph in definition.splitlines() or [""]:
            body.extend(textwrap.wrap(paragraph, inner) or [""])
        body = body[:max(1, viewport.height - 3)]

        title = f" {word} "[:inner]
        lines = ["┌─" + title + "─" * (width - 3 - len(title)) + "┐"]
        for text in body:
            lines.append("│ " + text.ljust(inner) + " │")
        lines.append("└" + "─" * (width - 2) + "┘")

        top = max(0, viewport.height - len(lines) - 1)
        col = (viewport.width - width) // 2
        return "".join(
            goto(top + number, col) + RESET + text for number, text in enumerate(lines)
        )

    def _list_box(self, title, labels, index, viewport):
        width = min(viewport.width - 2, 70)
        if width < 8 or viewport.height < 4:
            return ""
        inner = width - 4
        visible = max(1, min(len(labels), viewport.height - 4))
        first = max(0, min(index - visible // 2, len(labels) - visible))
        shown = labels[first:first + visible]

        head = f" {title} "[:inner]
        lines = ["┌─" + head + "─" * (width - 3 - len(head)) + "┐"]
        if not shown:
            lines.append("│ " + "(none)".ljust(inner) + " │")
        for number, label in enumerate(shown, first):
            text = label[:inner].ljust(inner)
            if number == index:
                text = "\x1b[7m" + text + RESET
            lines.append("│ " + text + " │")
        lines.append("└" + "─" * (width - 2) + "┘")

        top = max(0, (viewport.height - len(lines)) // 2)
        col = (viewport.width - width) // 2
        return "".join(
            goto(top + number, col) + RESET + text for number, text in enumerate(lines)
        )

    # -- frame --------------------------------------------------------------

    def render(self, window, viewport, geometry, overlay=None):
        """Return the terminal output that draws ``window`` over the whole viewport."""
        overlay = overlay or Overlay()
        images = self.encode_all([line.image for line in window if line.image is not None])

        out = []
        if self.protocol is GraphicsProtocol.KITTY:
            out.append(kitty_clear())
        row = 0
        for line in window:
            if row >= viewport.height:
                break
            if line.image is not None:
                out.append(self._draw_image(row, line.image, images[line.image], viewport))
            else:
                out.append(goto(row, 0) + CLEAR_LINE)
                text = self._draw_text(line, geometry, overlay)
                if text:
                    out.append(goto(row, geometry.left) + text)
            row += line.rows
        while row < viewport.height:
            out.append(goto(row, 0) + CLEAR_LINE)
            row += 1

        if overlay.panel is not None:
            out.append(self._list_box(*overlay.panel, viewport))
        if overlay.lookup is not None:
            out.append(self._lookup_box(overlay.lookup[0], overlay.lookup[1], viewport))
        if overlay.message:
            out.append(
                goto(viewport.height - 1, 0) + CLEAR_LINE
                + "\x1b[7m" + overlay.message[:viewport.width] + RESET
            )
        return "".join(out)
