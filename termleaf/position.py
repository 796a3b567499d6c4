"""
Conversion between visual lines, logical positions and reading progress.

Reading progress is stored as a fraction of the chapter's logical length so
that it can be restored whatever the viewport looks like when the book is
opened again.
"""

from bisect import bisect_left, bisect_right
from dataclasses import dataclass

from termleaf.document import LogicalPosition
from termleaf.errors import ContractViolation


@dataclass(frozen=True)
class ReadingProgress:
    chapter: int
    fraction: float = 0.0

    def __post_init__(self):
        if self.chapter < 0:
            raise ContractViolation(f"chapter must not be negative, got {self.chapter}")
        if not 0.0 <= self.fraction < 1.0:
            raise ContractViolation(f"fraction must be in [0, 1), got {self.fraction}")


def locate_line(lines, offset, structural=True):
    """
    Return the index of the line showing ``offset``.

    When several lines start at ``offset`` (a blank line anchored before a
    block, then the block's first line), ``structural`` picks the blank one.
    If no line contains the offset, the closest preceding line is returned.
    """
    starts = [line.start for line in lines]
    index = bisect_right(starts, offset) - 1
    if index < 0:
        return 0
    if structural and starts[index] == offset:
        index = bisect_left(starts, offset)
    return index


def progress_for(chapter, position):
    """Fraction of ``chapter`` read when ``position`` is at the top of the screen."""
    if chapter.length == 0:
        return ReadingProgress(chapter.index, 0.0)
    offset = min(max(0, position.offset), chapter.length - 1)
    return ReadingProgress(chapter.index, offset / chapter.length)


def position_for(chapter, progress):
    if chapter.length == 0:
        return LogicalPosition(chapter.index, 0)
    offset = int(round(progress.fraction * chapter.length))
    return LogicalPosition(chapter.index, min(max(0, offset), chapter.length - 1))
