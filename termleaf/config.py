"""
Reader settings.

Settings are read from ``config.json`` in the per-user configuration
directory. Missing keys keep their defaults, unknown keys are logged and
ignored, and invalid values raise ConfigurationError.

Example:
    >>> settings = Settings(margin=4, zoom_mode="spacing")
    >>> settings.layout().zoom_mode
    'spacing'
"""

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from typing import Tuple

from termleaf.errors import ConfigurationError
from termleaf.reflow import LayoutSettings
from termleaf.state import config_dir

logger = logging.getLogger(__name__)


MAX_MARGIN = 20
THEMES = ("dark", "light")
IMAGE_PROTOCOLS = ("auto", "kitty", "sixel", "iterm2", "none")
IMAGE_FALLBACKS = ("placeholder", "halfblocks")


def _color(name, value):
    if (
        not isinstance(value, (list, tuple))
        or len(value) != 3
        or not all(isinstance(c, int) and 0 <= c <= 255 for c in value)
    ):
        raise ConfigurationError(f"{name} must be three integers between 0 and 255, got {value!r}")
    return tuple(value)


@dataclass
class Settings:
    """
    User-tunable behaviour.

    All options have sensible defaults; a config file only needs the keys
    it wants to change.
    """

    # Layout
    margin: int = 2
    text_size: float = 1.0
    zoom_step: float = 0.25
    min_zoom: float = 0.5
    max_zoom: float = 3.0
    zoom_mode: str = "columns"  # "columns" narrows the text, "spacing" spreads glyphs
    cell_aspect: float = 2.0  # cell height / cell width
    cell_width: int = 10  # pixels, used to size images

    # Behaviour
    auto_scroll_interval: float = 2.0  # seconds per line
    image_protocol: str = "auto"
    image_fallback: str = "placeholder"
    prefetch: bool = True

    # Colours
    theme: str = "dark"
    highlight_color: Tuple[int, int, int] = (200, 170, 80)
    note_color: Tuple[int, int, int] = (120, 160, 220)
    search_color: Tuple[int, int, int] = (140, 200, 140)

    def __post_init__(self):
        """Validate settings."""
        if not 0 <= self.margin <= MAX_MARGIN:
            raise ConfigurationError(f"margin must be between 0 and {MAX_MARGIN}, got {self.margin}")
        if not 0 < self.min_zoom <= self.max_zoom:
            raise ConfigurationError(
                f"zoom limits must satisfy 0 < min_zoom <= max_zoom, "
                f"got {self.min_zoom} and {self.max_zoom}"
            )
        if not self.min_zoom <= self.text_size <= self.max_zoom:
            raise ConfigurationError(
                f"text_size must be between {self.min_zoom} and {self.max_zoom}, got {self.text_size}"
            )
        if not self.zoom_step > 0:
            raise ConfigurationError(f"zoom_step must be positive, got {self.zoom_step}")
        if self.zoom_mode not in ("columns", "spacing"):
            raise ConfigurationError(f"zoom_mode must be 'columns' or 'spacing', got {self.zoom_mode!r}")
        if not self.cell_aspect > 0 or self.cell_width <= 0:
            raise ConfigurationError("cell_aspect and cell_width must be positive")
        if not self.auto_scroll_interval > 0:
            raise ConfigurationError(
                f"auto_scroll_interval must be positive, got {self.auto_scroll_interval}"
            )
        if self.image_protocol not in IMAGE_PROTOCOLS:
            raise ConfigurationError(
                f"image_protocol must be one of {IMAGE_PROTOCOLS}, got {self.image_protocol!r}"
            )
        if self.image_fallback not in IMAGE_FALLBACKS:
            raise ConfigurationError(
                f"image_fallback must be one of {IMAGE_FALLBACKS}, got {self.image_fallback!r}"
            )
        if self.theme not in THEMES:
            raise ConfigurationError(f"theme must be one of {THEMES}, got {self.theme!r}")
        self.highlight_color = _color("highlight_color", self.highlight_color)
        self.note_color = _color("note_color", self.note_color)
        self.search_color = _color("search_color", self.search_color)

    def layout(self, cell_pixels=None):
        """LayoutSettings for the reflow engine, preferring measured cell pixels."""
        cell_width, cell_aspect = self.cell_width, self.cell_aspect
        if cell_pixels:
            cell_width = cell_pixels[0]
            cell_aspect = cell_pixels[1] / cell_pixels[0]
        return LayoutSettings(cell_aspect=cell_aspect, cell_width=cell_width, zoom_mode=self.zoom_mode)

    def clamp_zoom(self, text_size):
        return round(min(self.max_zoom, max(self.min_zoom, text_size)), 2)


SETTING_NAMES = tuple(f.name for f in dataclasses.fields(Settings))


def load_settings(path=None):
    """Load settings from ``path`` (config.json in the config dir by default)."""
    if path is None:
        directory = config_dir()
        if directory is None:
            return Settings()
        path = os.path.join(directory, "config.json")
    if not os.path.exists(path):
        return Settings()

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")

    known = {}
    for key, value in data.items():
        if key in SETTING_NAMES:
            known[key] = value
        else:
            logger.warning("Ignoring unknown setting %r in %s", key, path)
    try:
        return Settings(**known)
    except TypeError as exc:
        raise ConfigurationError(f"{path}: {exc}") from exc
