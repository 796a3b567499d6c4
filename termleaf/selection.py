"""
Selection and navigation modes.

Browse is plain reading. Select shows a word cursor, VisualSelect adds an
anchor so the range between anchor and cursor can be highlighted or noted,
and DictionaryLookup shows a definition and then returns to whichever mode
it was entered from. Contents and Annotations are list views the session
opens over Browse; the machine itself stays in Browse while they are shown.

The cursor is a word index into the chapter's logical text, so word motion
gives the same result however the chapter is currently wrapped.
"""

import logging
import re
from bisect import bisect_left, bisect_right
from enum import Enum

from termleaf.document import LogicalRange
from termleaf.errors import InvalidTransition
from termleaf.position import locate_line

logger = logging.getLogger(__name__)


class Mode(Enum):
    BROWSE = "browse"
    SELECT = "select"
    VISUAL_SELECT = "visual"
    DICTIONARY_LOOKUP = "dictionary"
    # list views opened over Browse by the session
    CONTENTS = "contents"
    ANNOTATIONS = "annotations"


NEXT_WORD = "next-word"
PREV_WORD = "prev-word"
LINE_DOWN = "line-down"
LINE_UP = "line-up"
MOTIONS = (NEXT_WORD, PREV_WORD, LINE_DOWN, LINE_UP)

# Inline images are not words
_WORD = re.compile(r"[^\s\ufffc]+")


class WordIndex:
    """
    Word spans of a chapter's logical text.

    ``boundaries`` are offsets words never cross, the block starts of a
    chapter, since blocks are joined without separators.
    """

    def __init__(self, text, boundaries=()):
        self.text = text
        edges = sorted(set(boundaries) | {0, len(text)})
        self.spans = []
        for low, high in zip(edges, edges[1:]):
            self.spans.extend(match.span() for match in _WORD.finditer(text, low, high))
        self.starts = [start for start, _ in self.spans]

    @classmethod
    def for_chapter(cls, chapter):
        return cls(chapter.text, [block.start for block in chapter.blocks])

    def __len__(self):
        return len(self.spans)

    def at_or_after(self, offset):
        """Index of the word containing offset, else the next word, else the last word."""
        if not self.spans:
            return None
        index = bisect_right(self.starts, offset) - 1
        if index >= 0 and offset < self.spans[index][1]:
            return index
        return min(index + 1, len(self.spans) - 1)

    def containing(self, offset):
        index = bisect_right(self.starts, offset) - 1
        if index >= 0 and offset < self.spans[index][1]:
            return index
        return None

    def in_range(self, start, end):
        """Indices of words that start inside [start, end)."""
        return range(bisect_left(self.starts, start), bisect_left(self.starts, end))

    def word(self, index):
        start, end = self.spans[index]
        return self.text[start:end]


def clean_word(word):
    """Keep only the letters of a word, the form dictionaries are queried with."""
    return "".join(ch for ch in word if ch.isalpha())


class SelectionMachine:
    def __init__(self):
        self.mode = Mode.BROWSE
        self.chapter = None
        self.cursor = None
        self.anchor = None
        self.lookup_word = None
        self._return_mode = None
        self._words = None

    def _index_for(self, chapter):
        if self._words is None or self.chapter != chapter.index:
            self._words = WordIndex.for_chapter(chapter)
            self.chapter = chapter.index
        return self._words

    def _require(self, *modes):
        if self.mode not in modes:
            raise InvalidTransition(
                f"cannot do that in {self.mode.value} mode "
                f"(needs {', '.join(mode.value for mode in modes)})"
            )

    def reset(self):
        self.mode = Mode.BROWSE
        self.cursor = None
        self.anchor = None
        self.lookup_word = None
        self._return_mode = None

    # -- transitions ----------------------------------------------------

    def enter_select(self, chapter, offset):
        """Browse -> Select, cursor on the first word at or after ``offset``."""
        self._require(Mode.BROWSE)
        words = self._index_for(chapter)
        index = words.at_or_after(offset)
        if index is None:
            return False
        self.cursor = index
        self.anchor = None
        self.mode = Mode.SELECT
        return True

    def start_extent(self):
        """Select -> VisualSelect, anchored at the cursor."""
        self._require(Mode.SELECT)
        self.anchor = self.cursor
        self.mode = Mode.VISUAL_SELECT

    def confirm(self):
        """
        Finish a selection and return (chapter, LogicalRange).

        From VisualSelect this is the anchor-to-cursor range; from Select it
        is the cursor word. Either way the machine goes back to Browse.
        """
        self._require(Mode.SELECT, Mode.VISUAL_SELECT)
        result = self.chapter, self.selection_range()
        self.reset()
        return result

    def cancel(self):
        """Abandon the current mode without producing a range."""
        if self.mode is Mode.DICTIONARY_LOOKUP:
            self.dismiss()
        else:
            self.reset()

    def begin_lookup(self, chapter, offset=None):
        """
        Enter DictionaryLookup for the cursor word (or the word at ``offset``).

        Returns the word looked up, or None if there is nothing to look up.
        """
        if self.mode is Mode.DICTIONARY_LOOKUP:
            raise InvalidTransition("already looking up a word")
        words = self._index_for(chapter)
        index = self.cursor if self.cursor is not None else words.at_or_after(offset or 0)
        if index is None:
            return None
        self.lookup_word = words.word(index)
        self._return_mode = self.mode
        self.mode = Mode.DICTIONARY_LOOKUP
        return self.lookup_word

    def dismiss(self):
        self._require(Mode.DICTIONARY_LOOKUP)
        self.mode = self._return_mode
        self._return_mode = None
        self.lookup_word = None

    # -- cursor ---------------------------------------------------------

    def cursor_range(self):
        if self.cursor is None or self._words is None:
            return None
        return LogicalRange(*self._words.spans[self.cursor])

    def selection_range(self):
        """Range covered by the selection, or None in Browse."""
        if self.cursor is None:
            return None
        if self.anchor is None:
            return self.cursor_range()
        low, high = sorted((self.anchor, self.cursor))
        return LogicalRange(self._words.spans[low][0], self._words.spans[high][1])

    def place(self, chapter, offset):
        """Put the cursor on the word at ``offset``; returns False if there is none."""
        self._require(Mode.SELECT, Mode.VISUAL_SELECT)
        if chapter.index != self.chapter:
            return False
        index = self._index_for(chapter).containing(offset)
        if index is None:
            return False
        self.cursor = index
        return True

    def move(self, motion, lines=None):
        """
        Move the cursor by word, or by visual line when ``lines`` is given.

        Line motion picks the word on the next (or previous) line that has
        words, nearest to the cursor's column.
        """
        self._require(Mode.SELECT, Mode.VISUAL_SELECT)
        words = self._words
        if motion == NEXT_WORD:
            self.cursor = min(self.cursor + 1, len(words) - 1)
        elif motion == PREV_WORD:
            self.cursor = max(self.cursor - 1, 0)
        elif motion in (LINE_DOWN, LINE_UP):
            if not lines:
                raise InvalidTransition("line motion needs the current layout")
            self.cursor = self._line_motion(lines, 1 if motion == LINE_DOWN else -1)
        else:
            raise InvalidTransition(f"unknown motion {motion!r}")

    def _line_motion(self, lines, step):
        words = self._words
        start = words.spans[self.cursor][0]
        current = locate_line(lines, start, structural=False)
        column = start - lines[current].start
        index = current + step
        while 0 <= index < len(lines):
            line = lines[index]
            candidates = words.in_range(line.start, line.end)
            if len(candidates):
                target = line.start + column
                for candidate in candidates:
                    if words.spans[candidate][1] > target:
                        return candidate
                return candidates[-1]
            index += step
        return self.cursor
