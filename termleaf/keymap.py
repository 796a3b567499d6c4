"""Translation of curses key codes into logical input events."""

import curses

from termleaf.annotations import AnnotationKind
from termleaf.events import (
    AdjustMargin,
    Cancel,
    ChapterEnd,
    ChapterStart,
    Choose,
    Dismiss,
    EnterSelect,
    FilterAnnotations,
    Highlight,
    LookupWord,
    MoveCursor,
    MoveListCursor,
    NextChapter,
    OpenAnnotations,
    OpenContents,
    PrevChapter,
    Quit,
    RemoveAnnotation,
    ScrollLines,
    ScrollPages,
    SearchNext,
    StartExtent,
    ToggleAutoScroll,
    ToggleTheme,
    Zoom,
)
from termleaf.selection import LINE_DOWN, LINE_UP, NEXT_WORD, PREV_WORD, Mode


# key bindings
SCROLL_DOWN = {curses.KEY_DOWN, ord("j")}
SCROLL_UP = {curses.KEY_UP, ord("k")}
PAGE_DOWN = {curses.KEY_NPAGE, ord("l"), ord(" "), curses.KEY_RIGHT}
PAGE_UP = {curses.KEY_PPAGE, ord("h"), curses.KEY_LEFT}
CH_NEXT = {ord("n")}
CH_PREV = {ord("p")}
CH_HOME = {curses.KEY_HOME, ord("g")}
CH_END = {curses.KEY_END, ord("G")}
ZOOM_IN = {ord("+"), ord("=")}
ZOOM_OUT = {ord("-")}
MARGIN_WIDER = {ord("]")}
MARGIN_NARROWER = {ord("[")}
AUTO_SCROLL = {ord("a")}
SELECT = {ord("s"), ord("v")}
SEARCH = {ord("/")}
SEARCH_NEXT = {ord("N")}
LOOKUP = {ord("d")}
TOC = {9, ord("t")}
ANNOTATIONS = {ord("A")}
COLORSWITCH = {ord("c")}
QUIT = {ord("q"), 3}

# contents and annotation lists
FOLLOW = {10, 13, curses.KEY_ENTER}
FILTERS = {
    ord("1"): None,
    ord("2"): AnnotationKind.HIGHLIGHT,
    ord("3"): AnnotationKind.NOTE,
}

# select and visual modes
WORD_NEXT = {ord("w"), ord("l"), curses.KEY_RIGHT}
WORD_PREV = {ord("b"), ord("h"), curses.KEY_LEFT}
LINE_NEXT = {ord("j"), curses.KEY_DOWN}
LINE_PREV = {ord("k"), curses.KEY_UP}
EXTENT = {ord("v")}
HIGHLIGHT = {ord("y"), 10, 13, curses.KEY_ENTER}
NOTE = {ord("a")}
REMOVE = {ord("x")}
CANCEL = {27, ord("q")}

# Keys that need text from the user before they become an event
NOTE_PROMPT = "note"
SEARCH_PROMPT = "search"


def _browse(key):
    if key in SCROLL_DOWN:
        return ScrollLines(1)
    if key in SCROLL_UP:
        return ScrollLines(-1)
    if key in PAGE_DOWN:
        return ScrollPages(1)
    if key in PAGE_UP:
        return ScrollPages(-1)
    if key in CH_NEXT:
        return NextChapter()
    if key in CH_PREV:
        return PrevChapter()
    if key in CH_HOME:
        return ChapterStart()
    if key in CH_END:
        return ChapterEnd()
    if key in ZOOM_IN:
        return Zoom(1)
    if key in ZOOM_OUT:
        return Zoom(-1)
    if key in MARGIN_WIDER:
        return AdjustMargin(1)
    if key in MARGIN_NARROWER:
        return AdjustMargin(-1)
    if key in AUTO_SCROLL:
        return ToggleAutoScroll()
    if key in SELECT:
        return EnterSelect()
    if key in SEARCH:
        return SEARCH_PROMPT
    if key in SEARCH_NEXT:
        return SearchNext()
    if key in LOOKUP:
        return LookupWord()
    if key in TOC:
        return OpenContents()
    if key in ANNOTATIONS:
        return OpenAnnotations()
    if key in COLORSWITCH:
        return ToggleTheme()
    if key in QUIT:
        return Quit()
    return None


def _list(key, mode):
    if key in SCROLL_DOWN:
        return MoveListCursor(1)
    if key in SCROLL_UP:
        return MoveListCursor(-1)
    if key == curses.KEY_NPAGE:
        return MoveListCursor(10)
    if key == curses.KEY_PPAGE:
        return MoveListCursor(-10)
    if key in FOLLOW:
        return Choose()
    if mode is Mode.CONTENTS and key in TOC:
        return OpenContents()
    if mode is Mode.ANNOTATIONS:
        if key in ANNOTATIONS:
            return OpenAnnotations()
        if key in FILTERS:
            return FilterAnnotations(FILTERS[key])
    if key in CANCEL:
        return Cancel()
    return None


def _select(key, visual):
    if key in WORD_NEXT:
        return MoveCursor(NEXT_WORD)
    if key in WORD_PREV:
        return MoveCursor(PREV_WORD)
    if key in LINE_NEXT:
        return MoveCursor(LINE_DOWN)
    if key in LINE_PREV:
        return MoveCursor(LINE_UP)
    if key in EXTENT and not visual:
        return StartExtent()
    if key in HIGHLIGHT:
        return Highlight()
    if key in NOTE:
        return NOTE_PROMPT
    if key in REMOVE and not visual:
        return RemoveAnnotation()
    if key in LOOKUP:
        return LookupWord()
    if key in ZOOM_IN:
        return Zoom(1)
    if key in ZOOM_OUT:
        return Zoom(-1)
    if key in CANCEL:
        return Cancel()
    return None


def translate(key, mode):
    """
    Map a key code to an event for ``mode``.

    Returns an event, NOTE_PROMPT or SEARCH_PROMPT when the caller has to
    ask for text first, or None for unbound keys.
    """
    if mode is Mode.BROWSE:
        return _browse(key)
    if mode is Mode.DICTIONARY_LOOKUP:
        return None if key == -1 else Dismiss()
    if mode in (Mode.CONTENTS, Mode.ANNOTATIONS):
        return _list(key, mode)
    return _select(key, visual=mode is Mode.VISUAL_SELECT)
