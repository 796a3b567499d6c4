"""Tests for key translation."""

import curses

import pytest

from termleaf.annotations import AnnotationKind
from termleaf.events import (
    Cancel,
    Choose,
    Dismiss,
    EnterSelect,
    FilterAnnotations,
    Highlight,
    MoveCursor,
    MoveListCursor,
    OpenAnnotations,
    OpenContents,
    Quit,
    ScrollLines,
    ScrollPages,
    StartExtent,
    ToggleTheme,
    Zoom,
)
from termleaf.keymap import NOTE_PROMPT, SEARCH_PROMPT, translate
from termleaf.selection import NEXT_WORD, Mode


class TestBrowseKeys:
    """Reading keys in Browse mode."""

    @pytest.mark.parametrize("key, event", [
        (ord("j"), ScrollLines(1)),
        (curses.KEY_UP, ScrollLines(-1)),
        (ord(" "), ScrollPages(1)),
        (curses.KEY_PPAGE, ScrollPages(-1)),
        (ord("+"), Zoom(1)),
        (ord("-"), Zoom(-1)),
        (ord("s"), EnterSelect()),
        (ord("q"), Quit()),
        (9, OpenContents()),
        (ord("t"), OpenContents()),
        (ord("A"), OpenAnnotations()),
        (ord("c"), ToggleTheme()),
    ])
    def test_bindings(self, key, event):
        assert translate(key, Mode.BROWSE) == event

    def test_search_needs_prompt(self):
        assert translate(ord("/"), Mode.BROWSE) == SEARCH_PROMPT

    def test_unbound_key(self):
        assert translate(ord("z"), Mode.BROWSE) is None


class TestSelectKeys:
    """Keys in the selection modes."""

    def test_word_motion(self):
        assert translate(ord("w"), Mode.SELECT) == MoveCursor(NEXT_WORD)

    def test_extent_only_from_select(self):
        assert translate(ord("v"), Mode.SELECT) == StartExtent()
        assert translate(ord("v"), Mode.VISUAL_SELECT) is None

    def test_highlight_and_note(self):
        assert translate(10, Mode.VISUAL_SELECT) == Highlight()
        assert translate(ord("a"), Mode.SELECT) == NOTE_PROMPT

    def test_escape_cancels(self):
        assert translate(27, Mode.VISUAL_SELECT) == Cancel()
        assert translate(ord("q"), Mode.SELECT) == Cancel()

    def test_any_key_dismisses_lookup(self):
        assert translate(ord("x"), Mode.DICTIONARY_LOOKUP) == Dismiss()
        assert translate(-1, Mode.DICTIONARY_LOOKUP) is None


class TestListKeys:
    """Keys in the table of contents and the annotation list."""

    @pytest.mark.parametrize("mode", [Mode.CONTENTS, Mode.ANNOTATIONS])
    def test_movement_and_choice(self, mode):
        assert translate(ord("j"), mode) == MoveListCursor(1)
        assert translate(curses.KEY_UP, mode) == MoveListCursor(-1)
        assert translate(curses.KEY_NPAGE, mode) == MoveListCursor(10)
        assert translate(10, mode) == Choose()
        assert translate(27, mode) == Cancel()

    def test_filters_only_in_annotation_list(self):
        assert translate(ord("2"), Mode.ANNOTATIONS) == FilterAnnotations(AnnotationKind.HIGHLIGHT)
        assert translate(ord("1"), Mode.ANNOTATIONS) == FilterAnnotations(None)
        assert translate(ord("3"), Mode.CONTENTS) is None

    def test_opening_key_closes_list(self):
        assert translate(ord("t"), Mode.CONTENTS) == OpenContents()
        assert translate(ord("A"), Mode.ANNOTATIONS) == OpenAnnotations()
        assert translate(ord("t"), Mode.ANNOTATIONS) is None
