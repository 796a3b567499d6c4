"""
Format-agnostic document model.

A Document is an ordered sequence of Chapters, a Chapter an ordered sequence
of blocks, and text blocks are made of Runs. Every block owns a half-open
logical offset range inside its chapter. Offsets are assigned once when the
Chapter is built and never change afterwards.

Example:
    >>> chapter = Chapter(0, [
    ...     Heading(1, [Run("Introduction")]),
    ...     Paragraph([Run("Plain and "), Run("strong", strong=True)]),
    ... ])
    >>> chapter.length
    28
"""

import dataclasses
from dataclasses import dataclass
from typing import Optional, Tuple

from termleaf.errors import ContractViolation


# Inline images and image blocks occupy exactly one logical offset.
OBJECT_REPLACEMENT = "\ufffc"

TAB_SIZE = 4


@dataclass(frozen=True)
class Run:
    """A span of text, or an inline image reference, with style flags."""

    text: str = ""
    emphasis: bool = False
    strong: bool = False
    code: bool = False
    image: Optional[str] = None
    alt: str = ""

    def __post_init__(self):
        if not isinstance(self.text, str):
            raise ContractViolation(f"run text must be str, got {type(self.text).__name__}")
        if self.image is not None:
            if self.text != OBJECT_REPLACEMENT:
                raise ContractViolation("inline image runs must hold a single U+FFFC")
        elif OBJECT_REPLACEMENT in self.text:
            raise ContractViolation("text runs must not contain U+FFFC")

    @classmethod
    def image_ref(cls, resource_id, alt=""):
        return cls(text=OBJECT_REPLACEMENT, image=resource_id, alt=alt)

    def __len__(self):
        return len(self.text)


def _as_runs(runs):
    if isinstance(runs, str):
        runs = [Run(runs)]
    runs = tuple(runs)
    for run in runs:
        if not isinstance(run, Run):
            raise ContractViolation(f"expected Run, got {type(run).__name__}")
    return runs


class _TextBlock:
    """Shared behaviour of blocks whose content is a tuple of runs."""

    @property
    def text(self):
        return "".join(run.text for run in self.runs)

    @property
    def length(self):
        return sum(len(run) for run in self.runs)


@dataclass(frozen=True)
class Paragraph(_TextBlock):
    runs: Tuple[Run, ...]
    start: int = -1
    end: int = -1

    kind = "paragraph"

    def __post_init__(self):
        object.__setattr__(self, "runs", _as_runs(self.runs))


@dataclass(frozen=True)
class Heading(_TextBlock):
    level: int
    runs: Tuple[Run, ...]
    start: int = -1
    end: int = -1

    kind = "heading"

    def __post_init__(self):
        if not 1 <= self.level <= 6:
            raise ContractViolation(f"heading level must be between 1 and 6, got {self.level}")
        object.__setattr__(self, "runs", _as_runs(self.runs))


@dataclass(frozen=True)
class ListItem(_TextBlock):
    runs: Tuple[Run, ...]
    depth: int = 0
    start: int = -1
    end: int = -1

    kind = "list"

    def __post_init__(self):
        if self.depth < 0:
            raise ContractViolation(f"list depth must not be negative, got {self.depth}")
        object.__setattr__(self, "runs", _as_runs(self.runs))


@dataclass(frozen=True)
class CodeBlock:
    """Preformatted text. Tabs are expanded when the block is created."""

    text: str
    language: Optional[str] = None
    start: int = -1
    end: int = -1

    kind = "code"

    def __post_init__(self):
        if OBJECT_REPLACEMENT in self.text:
            raise ContractViolation("code blocks must not contain U+FFFC")
        object.__setattr__(self, "text", self.text.expandtabs(TAB_SIZE))

    @property
    def length(self):
        return len(self.text)


@dataclass(frozen=True)
class ImageBlock:
    resource_id: str
    natural_width: int
    natural_height: int
    alt: str = ""
    start: int = -1
    end: int = -1

    kind = "image"
    text = OBJECT_REPLACEMENT
    length = 1

    def __post_init__(self):
        if self.natural_width <= 0 or self.natural_height <= 0:
            raise ContractViolation(
                f"image {self.resource_id!r} has invalid size "
                f"{self.natural_width}x{self.natural_height}"
            )


BLOCK_TYPES = (Paragraph, Heading, ListItem, CodeBlock, ImageBlock)


def _place(blocks):
    """Assign offsets to blocks, checking any offsets they already carry."""
    placed = []
    offset = 0
    for block in blocks:
        if not isinstance(block, BLOCK_TYPES):
            raise ContractViolation(f"unknown block type {type(block).__name__}")
        end = offset + block.length
        if block.start == -1 and block.end == -1:
            block = dataclasses.replace(block, start=offset, end=end)
        elif block.start != offset or block.end != end:
            raise ContractViolation(
                f"{block.kind} block claims [{block.start}, {block.end}) "
                f"but its content spans [{offset}, {end})"
            )
        placed.append(block)
        offset = end
    return tuple(placed), offset


class Chapter:
    """An ordered run of blocks with a stable index and logical length."""

    def __init__(self, index, blocks, title=None):
        if not isinstance(index, int) or index < 0:
            raise ContractViolation(f"chapter index must be a non-negative int, got {index!r}")
        self.index = index
        self.title = title
        self.blocks, self.length = _place(blocks)
        self.text = "".join(block.text for block in self.blocks)

    def __repr__(self):
        return f"Chapter(index={self.index}, title={self.title!r}, length={self.length})"

    def block_at(self, offset):
        """Return the block whose range contains offset, or None."""
        for block in self.blocks:
            if block.start <= offset < block.end:
                return block
        return None

    def check_range(self, start, end):
        if not 0 <= start <= end <= self.length:
            raise ContractViolation(
                f"range [{start}, {end}) is outside chapter {self.index} "
                f"of length {self.length}"
            )


class Document:
    """Immutable sequence of chapters."""

    def __init__(self, chapters, title=None):
        self.title = title
        self.chapters = tuple(chapters)
        for position, chapter in enumerate(self.chapters):
            if chapter.index != position:
                raise ContractViolation(
                    f"chapter at position {position} has index {chapter.index}"
                )

    def __len__(self):
        return len(self.chapters)

    def __iter__(self):
        return iter(self.chapters)

    def chapter(self, index):
        if not 0 <= index < len(self.chapters):
            raise ContractViolation(
                f"chapter {index} out of range (document has {len(self.chapters)})"
            )
        return self.chapters[index]


@dataclass(frozen=True, order=True)
class LogicalPosition:
    chapter: int
    offset: int


@dataclass(frozen=True)
class LogicalRange:
    """Half-open [start, end) range of logical offsets within a chapter."""

    start: int
    end: Optional[int] = None

    def __post_init__(self):
        if self.end is None:
            object.__setattr__(self, "end", self.start)
        if self.start < 0 or self.end < self.start:
            raise ContractViolation(f"invalid range [{self.start}, {self.end})")

    def __len__(self):
        return self.end - self.start

    @property
    def empty(self):
        return self.start == self.end

    def intersect(self, start, end):
        """Return the overlap with [start, end) as a tuple, or None."""
        low = max(self.start, start)
        high = min(self.end, end)
        if low >= high:
            return None
        return low, high
