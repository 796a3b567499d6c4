"""
Terminal graphics protocols and image encoders.

The protocol set is closed: Kitty, Sixel, iTerm2, or none. Each protocol has
one encoder, a pure function from (image bytes, cell columns, cell rows) to
the escape sequence that draws the image. The protocol is picked once per
session from the capability descriptor supplied by the caller; this module
does no terminal detection of its own.
"""

import base64
import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image

from termleaf.errors import CapabilityMismatch, ConfigurationError, ImageDecodeFailure

logger = logging.getLogger(__name__)


class GraphicsProtocol(Enum):
    KITTY = "kitty"
    SIXEL = "sixel"
    ITERM2 = "iterm2"
    NONE = "none"


@dataclass(frozen=True)
class TerminalCapabilities:
    """What the terminal can do, as declared by the caller."""

    graphics: GraphicsProtocol = GraphicsProtocol.NONE
    truecolor: bool = True
    cell_pixels: Optional[Tuple[int, int]] = None

    def __post_init__(self):
        object.__setattr__(self, "graphics", GraphicsProtocol(self.graphics))


DEFAULT_CELL_PIXELS = (10, 20)

KITTY_CHUNK = 4096

FALLBACKS = ("placeholder", "halfblocks")


def select_protocol(requested, capabilities):
    """
    Decide which protocol a session will use.

    ``requested`` is "auto" (or None) to take whatever the terminal
    declares, or a protocol name. Asking for a protocol the terminal does
    not support raises CapabilityMismatch; asking for "none" always works.
    """
    if requested in (None, "auto"):
        return capabilities.graphics
    try:
        protocol = GraphicsProtocol(requested)
    except ValueError:
        raise ConfigurationError(f"unknown image protocol {requested!r}") from None
    if protocol is not GraphicsProtocol.NONE and protocol is not capabilities.graphics:
        raise CapabilityMismatch(protocol.value, capabilities.graphics.value)
    return protocol


def _decode(data, resource_id=None):
    if not data:
        raise ImageDecodeFailure(resource_id, "no image data")
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        raise ImageDecodeFailure(resource_id, exc) from exc
    return image


def _fit(image, cols, rows, cell_pixels):
    """Shrink image to the pixel box of cols x rows cells, keeping its mode sensible."""
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() or "transparency" in image.info else "RGB")
    box = (max(1, cols * cell_pixels[0]), max(1, rows * cell_pixels[1]))
    image = image.copy()
    image.thumbnail(box, Image.Resampling.LANCZOS)
    return image


def _png(image):
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def encode_kitty(data, cols, rows, cell_pixels=DEFAULT_CELL_PIXELS, resource_id=None):
    """Kitty graphics protocol: PNG payload sent in base64 chunks of at most 4096 bytes."""
    payload = _png(_fit(_decode(data, resource_id), cols, rows, cell_pixels))
    encoded = base64.standard_b64encode(payload).decode("ascii")
    chunks = [encoded[i:i + KITTY_CHUNK] for i in range(0, len(encoded), KITTY_CHUNK)]
    out = []
    for number, chunk in enumerate(chunks):
        more = 1 if number < len(chunks) - 1 else 0
        if number == 0:
            control = f"a=T,f=100,c={cols},r={rows},C=1,q=2,m={more}"
        else:
            control = f"m={more}"
        out.append(f"\x1b_G{control};{chunk}\x1b\\")
    return "".join(out)


def kitty_clear():
    """Delete every image Kitty has placed, used at the start of each frame."""
    return "\x1b_Ga=d,d=A,q=2\x1b\\"


def encode_iterm2(data, cols, rows, cell_pixels=DEFAULT_CELL_PIXELS, resource_id=None):
    """iTerm2 inline image (OSC 1337) with a PNG payload."""
    payload = _png(_fit(_decode(data, resource_id), cols, rows, cell_pixels))
    encoded = base64.standard_b64encode(payload).decode("ascii")
    return (
        f"\x1b]1337;File=inline=1;size={len(payload)};width={cols};height={rows};"
        f"preserveAspectRatio=1:{encoded}\x07"
    )


def _sixel_rle(data):
    out = []
    for char, group in itertools.groupby(data):
        count = len(list(group))
        if count > 3:
            out.append(f"!{count}{char}")
        else:
            out.append(char * count)
    return "".join(out)


def encode_sixel(data, cols, rows, cell_pixels=DEFAULT_CELL_PIXELS, resource_id=None):
    """DEC sixel: quantised to at most 256 colours and drawn in bands of six pixel rows."""
    image = _fit(_decode(data, resource_id), cols, rows, cell_pixels).convert("RGB")
    image = image.quantize(colors=256)
    width, height = image.size
    pixels = image.tobytes()
    palette = image.getpalette()

    out = ["\x1bPq", f'"1;1;{width};{height}']
    for index in sorted(set(pixels)):
        r, g, b = palette[index * 3:index * 3 + 3]
        out.append(f"#{index};2;{r * 100 // 255};{g * 100 // 255};{b * 100 // 255}")

    for top in range(0, height, 6):
        band = min(6, height - top)
        masks = {}
        for dy in range(band):
            row = pixels[(top + dy) * width:(top + dy + 1) * width]
            bit = 1 << dy
            for x, index in enumerate(row):
                mask = masks.get(index)
                if mask is None:
                    mask = masks[index] = [0] * width
                mask[x] |= bit
        for number, index in enumerate(sorted(masks)):
            if number:
                out.append("$")
            sixels = "".join(chr(63 + value) for value in masks[index])
            out.append(f"#{index}{_sixel_rle(sixels)}")
        out.append("-")
    out.append("\x1b\\")
    return "".join(out)


ENCODERS = {
    GraphicsProtocol.KITTY: encode_kitty,
    GraphicsProtocol.SIXEL: encode_sixel,
    GraphicsProtocol.ITERM2: encode_iterm2,
}


def rgb_to_color_index(r, g, b):
    """Convert RGB to 256-color palette index."""
    r, g, b = max(0, min(255, r)), max(0, min(255, g)), max(0, min(255, b))

    # Only truly neutral colours go to the grey ramp
    max_diff = max(abs(r - g), abs(g - b), abs(r - b))
    if max_diff < 35:
        avg = (r + g + b) / 3
        color_bias = max(abs(r - avg), abs(g - avg), abs(b - avg))
        if color_bias < 18:
            gray = int(avg)
            if gray < 8:
                return 16
            if gray > 248:
                return 231
            return 232 + min(23, max(0, (gray - 8) * 23 // 240))

    # 6x6x6 colour cube
    r_level = min(5, r * 6 // 256)
    g_level = min(5, g * 6 // 256)
    b_level = min(5, b * 6 // 256)
    return 16 + r_level * 36 + g_level * 6 + b_level


def fg_sgr(rgb, truecolor=True):
    r, g, b = rgb
    if truecolor:
        return f"38;2;{r};{g};{b}"
    return f"38;5;{rgb_to_color_index(r, g, b)}"


def bg_sgr(rgb, truecolor=True):
    r, g, b = rgb
    if truecolor:
        return f"48;2;{r};{g};{b}"
    return f"48;5;{rgb_to_color_index(r, g, b)}"


def placeholder_lines(alt, cols, rows):
    """
    A box of ``rows`` lines, ``cols`` cells wide, naming the image.

    The label is never cut. When it does not fit inside the box the box is
    dropped and the label is written whole on the middle row, so the lines
    may be wider than ``cols``.
    """
    label = f"[image: {alt}]" if alt else "[image]"
    inner = cols - 2
    if rows < 3 or len(label) > inner:
        width = max(cols, len(label))
        lines = [" " * width] * rows
        lines[(rows - 1) // 2] = label.center(width)
        return lines
    label = label[:inner]
    lines = ["┌" + "─" * inner + "┐"]
    middle = (rows - 3) // 2
    for number in range(rows - 2):
        text = label.center(inner) if number == middle else " " * inner
        lines.append("│" + text + "│")
    lines.append("└" + "─" * inner + "┘")
    return lines


def halfblock_lines(data, cols, rows, truecolor=True, resource_id=None):
    """Draw the image with '▀' cells, foreground the top pixel and background the bottom one."""
    image = _decode(data, resource_id).convert("RGB")
    image = image.resize((max(1, cols), max(1, rows * 2)), Image.Resampling.LANCZOS)
    lines = []
    for y in range(0, rows * 2, 2):
        line = []
        for x in range(cols):
            top = image.getpixel((x, y))
            bottom = image.getpixel((x, y + 1))
            line.append(f"\x1b[{fg_sgr(top, truecolor)};{bg_sgr(bottom, truecolor)}m▀")
        line.append("\x1b[0m")
        lines.append("".join(line))
    return lines


@dataclass(frozen=True)
class EncodedImage:
    """
    An image ready to draw.

    Protocol images carry one escape sequence placed at the top-left cell.
    Text fallbacks carry one string per row. ``width`` is set for plain
    placeholder text, which can be wider than the placement.
    """

    escape: str = ""
    lines: Tuple[str, ...] = ()
    failed: bool = False
    width: int = 0


def _placeholder(placement, failed=False):
    lines = tuple(placeholder_lines(placement.alt, placement.cols, placement.rows))
    return EncodedImage(lines=lines, failed=failed, width=max(len(line) for line in lines))


def encode_image(protocol, data, placement, cell_pixels=DEFAULT_CELL_PIXELS,
                 fallback="placeholder", truecolor=True):
    """
    Encode an image for ``protocol``, degrading to the placeholder on failure.

    ImageDecodeFailure never escapes: it is logged as a warning and the
    placeholder box is returned with ``failed`` set.
    """
    cols, rows = placement.cols, placement.rows
    try:
        if protocol is GraphicsProtocol.NONE:
            if fallback == "halfblocks":
                return EncodedImage(lines=tuple(halfblock_lines(
                    data, cols, rows, truecolor, placement.resource_id)))
            return _placeholder(placement)
        encoder = ENCODERS[protocol]
        return EncodedImage(escape=encoder(data, cols, rows, cell_pixels, placement.resource_id))
    except ImageDecodeFailure as exc:
        logger.warning("%s; drawing placeholder", exc)
        return _placeholder(placement, failed=True)
