"""Tests for protocol selection and the image encoders."""

import base64
import re

import pytest

from termleaf.errors import CapabilityMismatch, ConfigurationError, ImageDecodeFailure
from termleaf.graphics import (
    KITTY_CHUNK,
    GraphicsProtocol,
    TerminalCapabilities,
    encode_image,
    encode_iterm2,
    encode_kitty,
    encode_sixel,
    halfblock_lines,
    placeholder_lines,
    rgb_to_color_index,
    select_protocol,
)
from termleaf.reflow import ImagePlacement


class TestProtocolSelection:
    """The protocol is chosen once from the declared capabilities."""

    def test_auto_takes_terminal_protocol(self):
        caps = TerminalCapabilities(GraphicsProtocol.KITTY)
        assert select_protocol("auto", caps) is GraphicsProtocol.KITTY
        assert select_protocol(None, caps) is GraphicsProtocol.KITTY

    def test_unsupported_protocol(self):
        with pytest.raises(CapabilityMismatch):
            select_protocol("sixel", TerminalCapabilities(GraphicsProtocol.KITTY))

    def test_none_is_always_allowed(self):
        caps = TerminalCapabilities(GraphicsProtocol.ITERM2)
        assert select_protocol("none", caps) is GraphicsProtocol.NONE

    def test_unknown_protocol_name(self):
        with pytest.raises(ConfigurationError):
            select_protocol("vt340", TerminalCapabilities())

    def test_capabilities_accept_names(self):
        assert TerminalCapabilities("sixel").graphics is GraphicsProtocol.SIXEL


class TestEncoders:
    """Escape sequences for each protocol."""

    def test_kitty_single_chunk(self, png_bytes):
        out = encode_kitty(png_bytes, 4, 2)
        assert out.startswith("\x1b_Ga=T,f=100,c=4,r=2,"), "Missing Kitty header"
        assert "m=0;" in out
        assert out.endswith("\x1b\\")

    def test_kitty_chunks(self, noisy_png_bytes):
        out = encode_kitty(noisy_png_bytes, 10, 5)
        chunks = re.findall(r"\x1b_G([^;]*);([^\x1b]*)\x1b\\", out)
        assert len(chunks) > 1, "Large payload should be split"
        assert all(len(payload) <= KITTY_CHUNK for _, payload in chunks)
        assert [control.endswith("m=1") for control, _ in chunks[:-1]] == [True] * (len(chunks) - 1)
        assert chunks[-1][0] == "m=0"
        png = base64.b64decode("".join(payload for _, payload in chunks))
        assert png.startswith(b"\x89PNG")

    def test_iterm2(self, png_bytes):
        out = encode_iterm2(png_bytes, 4, 2)
        assert out.startswith("\x1b]1337;File=inline=1;")
        assert "width=4;height=2" in out
        assert out.endswith("\x07")

    def test_sixel(self, png_bytes):
        out = encode_sixel(png_bytes, 4, 2)
        assert out.startswith("\x1bPq")
        assert out.endswith("\x1b\\")
        assert "#0;2;" in out or re.search(r"#\d+;2;100;0;0", out), "Red should be in the palette"

    @pytest.mark.parametrize("encoder", [encode_kitty, encode_iterm2, encode_sixel])
    def test_malformed_data_raises_decode_failure(self, encoder):
        with pytest.raises(ImageDecodeFailure):
            encoder(b"definitely not an image", 4, 2)


class TestEncodeImage:
    """Fallbacks never raise."""

    placement = ImagePlacement("fig.png", 20, 5, "A red square")

    def test_none_protocol_draws_placeholder(self, png_bytes):
        image = encode_image(GraphicsProtocol.NONE, png_bytes, self.placement)
        assert image.escape == ""
        assert any("[image: A red square]" in line for line in image.lines)
        assert not image.failed

    def test_decode_failure_falls_back(self):
        image = encode_image(GraphicsProtocol.KITTY, b"junk", self.placement)
        assert image.failed
        assert image.escape == ""
        assert len(image.lines) == 5

    def test_missing_data_falls_back(self):
        image = encode_image(GraphicsProtocol.SIXEL, None, self.placement)
        assert image.failed

    def test_halfblocks(self, png_bytes):
        image = encode_image(GraphicsProtocol.NONE, png_bytes, self.placement, fallback="halfblocks")
        assert len(image.lines) == 5
        assert image.lines[0].count("▀") == 20


class TestTextHelpers:
    """Placeholders and colour conversion."""

    def test_placeholder_box(self):
        lines = placeholder_lines("cat", 16, 3)
        assert len(lines) == 3
        assert all(len(line) == 16 for line in lines)
        assert lines[0].startswith("┌") and lines[-1].endswith("┘")
        assert "[image: cat]" in lines[1]

    def test_single_row_placeholder(self):
        assert placeholder_lines("cat", 20, 1) == ["[image: cat]".center(20)]

    def test_two_row_placeholder_keeps_label(self):
        lines = placeholder_lines("Banner", 40, 2)
        assert len(lines) == 2
        assert any("[image: Banner]" in line for line in lines), "Alt text lost in a two-row box"

    @pytest.mark.parametrize("cols, rows", [(4, 1), (10, 5), (20, 5)])
    def test_narrow_placeholder_keeps_label(self, cols, rows):
        lines = placeholder_lines("A red square", cols, rows)
        assert len(lines) == rows
        assert any("[image: A red square]" in line for line in lines), "Alt text was cut"

    def test_placeholder_width_is_reported(self):
        image = encode_image(GraphicsProtocol.NONE, None, ImagePlacement("f.png", 4, 1, "A red square"))
        assert image.width == len("[image: A red square]")

    def test_halfblock_rows(self, png_bytes):
        lines = halfblock_lines(png_bytes, 4, 2, truecolor=False)
        assert len(lines) == 2
        assert "38;5;196" in lines[0], "Red should map to palette index 196"

    def test_rgb_to_color_index(self):
        assert rgb_to_color_index(255, 0, 0) == 196
        assert rgb_to_color_index(0, 0, 0) == 16
        assert rgb_to_color_index(255, 255, 255) == 231
        assert 232 <= rgb_to_color_index(128, 128, 128) <= 255
