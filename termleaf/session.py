"""
Reader session: the one object threaded through the input loop.

    session = ReaderSession(TerminalCapabilities(GraphicsProtocol.KITTY), images)
    session.open(document, book_id)
    while not session.quit_requested:
        if session.needs_redraw:
            out.write(session.render_frame())
        session.handle_input(next_event())
    session.close()

The session owns the paginator, annotation store and selection machine for
the open document, persists reading progress on chapter changes and on
close, and persists annotations whenever they change.
"""

import itertools
import logging
import re
from dataclasses import dataclass
from typing import Optional

from termleaf.annotations import AnnotationKind, AnnotationStore
from termleaf.config import MAX_MARGIN, Settings
from termleaf.document import LogicalPosition
from termleaf.errors import (
    DOCUMENT_END,
    CapabilityMismatch,
    ContractViolation,
    NavigationBoundary,
)
from termleaf.events import (
    AddNote,
    AdjustMargin,
    Cancel,
    ChapterEnd,
    ChapterStart,
    Choose,
    Click,
    Dismiss,
    EnterSelect,
    FilterAnnotations,
    Highlight,
    JumpChapter,
    JumpProgress,
    LookupWord,
    MoveCursor,
    MoveListCursor,
    NextChapter,
    OpenAnnotations,
    OpenContents,
    PrevChapter,
    Quit,
    RemoveAnnotation,
    Resize,
    ScrollLines,
    ScrollPages,
    Search,
    SearchNext,
    StartExtent,
    Tick,
    ToggleAutoScroll,
    ToggleTheme,
    Zoom,
)
from termleaf.graphics import GraphicsProtocol, select_protocol
from termleaf.pagination import Paginator
from termleaf.position import locate_line, progress_for
from termleaf.reflow import ViewportState, char_width, line_geometry, text_width
from termleaf.render import Overlay, Renderer
from termleaf.selection import Mode, SelectionMachine, clean_word

logger = logging.getLogger(__name__)


NO_DEFINITION = "No definition found."

FILTER_LABELS = {
    None: "All",
    AnnotationKind.HIGHLIGHT: "Highlights",
    AnnotationKind.NOTE: "Notes",
}

_ALWAYS = (Resize, Zoom, AdjustMargin, Tick, ToggleTheme, Quit)
_LIST = (MoveListCursor, Choose, Cancel, Dismiss)

# Events that mean something in each mode; anything else is ignored.
ALLOWED = {
    Mode.BROWSE: _ALWAYS + (
        ScrollLines, ScrollPages, ChapterStart, ChapterEnd, NextChapter, PrevChapter,
        JumpChapter, JumpProgress, ToggleAutoScroll, EnterSelect, LookupWord, Click,
        Search, SearchNext, RemoveAnnotation, OpenContents, OpenAnnotations,
    ),
    Mode.CONTENTS: _ALWAYS + _LIST + (OpenContents,),
    Mode.ANNOTATIONS: _ALWAYS + _LIST + (OpenAnnotations, FilterAnnotations),
    Mode.SELECT: _ALWAYS + (
        StartExtent, MoveCursor, Highlight, AddNote, RemoveAnnotation, Cancel,
        LookupWord, Click,
    ),
    Mode.VISUAL_SELECT: _ALWAYS + (
        MoveCursor, Highlight, AddNote, Cancel, LookupWord, Click,
    ),
    Mode.DICTIONARY_LOOKUP: _ALWAYS + (Dismiss, Cancel),
}


@dataclass
class ListView:
    """An open table of contents or annotation list."""

    mode: Mode
    title: str
    # (label, target) pairs: chapter indices or Annotation objects
    entries: list
    index: int = 0
    kind: Optional[AnnotationKind] = None

    def labels(self):
        return tuple(label for label, _ in self.entries)


class ReaderSession:
    def __init__(self, capabilities, images=None, settings=None, progress_store=None,
                 annotation_store=None, dictionary=None, viewport=None):
        self.capabilities = capabilities
        self.images = images
        self.settings = settings or Settings()
        self.progress_store = progress_store
        self.annotation_store = annotation_store
        self.dictionary = dictionary
        self._initial_viewport = viewport or ViewportState(
            80, 24, self.settings.text_size, self.settings.margin
        )

        try:
            self.protocol = select_protocol(self.settings.image_protocol, capabilities)
        except CapabilityMismatch as exc:
            logger.warning("%s; drawing images as placeholders", exc)
            self.protocol = GraphicsProtocol.NONE
        self.layout = self.settings.layout(capabilities.cell_pixels)
        self.renderer = Renderer(capabilities, images, self.protocol, self.settings)

        self.document = None
        self.book_id = None
        self.paginator = None
        self.annotations = None
        self.selection = SelectionMachine()
        self.message = None
        self.lookup = None
        self.search_query = None
        self._last_match = None
        self.view = None
        self.needs_redraw = False
        self.quit_requested = False

        self._handlers = {
            ScrollLines: lambda e: self.paginator.scroll(e.delta),
            ScrollPages: lambda e: self.paginator.scroll_page(e.delta),
            ChapterStart: lambda e: self.paginator.chapter_home(),
            ChapterEnd: lambda e: self.paginator.chapter_end(),
            NextChapter: lambda e: self.paginator.next_chapter(),
            PrevChapter: lambda e: self.paginator.prev_chapter(),
            JumpChapter: lambda e: self.paginator.jump_chapter(e.index),
            JumpProgress: self._jump_progress,
            Resize: self._resize,
            Zoom: self._zoom,
            AdjustMargin: self._adjust_margin,
            ToggleAutoScroll: self._toggle_auto_scroll,
            Tick: self._tick,
            EnterSelect: self._enter_select,
            StartExtent: lambda e: self.selection.start_extent(),
            MoveCursor: self._move_cursor,
            Highlight: self._highlight,
            AddNote: self._add_note,
            RemoveAnnotation: self._remove_annotation,
            Cancel: self._cancel,
            LookupWord: self._lookup_word,
            Dismiss: self._cancel,
            Click: self._click,
            Search: self._search,
            SearchNext: self._search_next,
            OpenContents: self._open_contents,
            OpenAnnotations: self._open_annotations,
            FilterAnnotations: self._filter_annotations,
            MoveListCursor: self._move_list_cursor,
            Choose: self._choose,
            ToggleTheme: self._toggle_theme,
            Quit: self._quit,
        }

    # -- session API --------------------------------------------------------

    @property
    def mode(self):
        if self.view is not None:
            return self.view.mode
        return self.selection.mode

    @property
    def theme(self):
        return self.renderer.theme

    @property
    def viewport(self):
        if self.paginator is None:
            return self._initial_viewport
        return self.paginator.viewport

    def open(self, document, book_id=None):
        """Start reading ``document``, restoring saved progress and annotations."""
        viewport = self.viewport
        if self.paginator is not None:
            self.close()
        self.document = document
        self.book_id = book_id
        self.paginator = Paginator(document, viewport, self.layout, prefetch=self.settings.prefetch)
        self.paginator.add_listener(self.invalidate)

        self.annotations = AnnotationStore(document)
        if self.annotation_store is not None and book_id is not None:
            self.annotations.load(self.annotation_store.load(book_id), strict=False)

        self.selection = SelectionMachine()
        self.message = None
        self.lookup = None
        self.search_query = None
        self._last_match = None
        self.view = None
        self.quit_requested = False

        if self.progress_store is not None and book_id is not None:
            progress = self.progress_store.load(book_id)
            if progress is not None:
                if progress.chapter < len(document):
                    self.paginator.jump_to_progress(progress)
                else:
                    logger.warning(
                        "Saved progress for %s points past the last chapter; starting over",
                        book_id,
                    )
        self.needs_redraw = True

    def handle_input(self, event):
        """
        Apply one logical input event.

        Returns a NavigationBoundary when navigation ran into an edge, else
        None. Events that mean nothing in the current mode are ignored.
        """
        if self.paginator is None:
            raise ContractViolation("no document is open")
        handler = self._handlers.get(type(event))
        if handler is None:
            raise ContractViolation(f"unknown input event {event!r}")
        if not isinstance(event, ALLOWED[self.mode]):
            logger.debug("Ignoring %s in %s mode", type(event).__name__, self.mode.value)
            return None

        if not isinstance(event, Tick) and self.message is not None:
            self.message = None
            self.needs_redraw = True

        chapter = self.paginator.chapter
        result = handler(event)
        if not isinstance(event, Tick):
            self.needs_redraw = True
        if self.paginator.chapter != chapter:
            self._save_progress()
        if isinstance(result, NavigationBoundary):
            self.message = result.message
            self.needs_redraw = True
            return result
        return None

    def render_frame(self):
        """Return the terminal output for the current state."""
        if self.paginator is None:
            raise ContractViolation("no document is open")
        window = self.paginator.visible_window()
        output = self.renderer.render(
            window,
            self.paginator.viewport,
            line_geometry(self.paginator.viewport, self.layout),
            self._overlay(window),
        )
        self.needs_redraw = False
        return output

    def current_progress(self):
        chapter = self.document.chapter(self.paginator.chapter)
        return progress_for(chapter, self.paginator.top_position())

    def current_annotations(self):
        return self.annotations.all()

    def next_tick_in(self, now=None):
        """Seconds until the control loop should send a Tick, or None."""
        if self.paginator is None:
            return None
        return self.paginator.next_tick_in(now)

    def invalidate(self):
        self.needs_redraw = True

    def close(self):
        """Persist progress and annotations and stop background work."""
        if self.paginator is None:
            return
        self._save_progress()
        self._save_annotations()
        self.paginator.close()
        self.renderer.close()
        self.paginator = None

    # -- persistence --------------------------------------------------------

    def _save_progress(self):
        if self.progress_store is not None and self.book_id is not None:
            self.progress_store.save(self.book_id, self.current_progress())

    def _save_annotations(self):
        if self.annotation_store is not None and self.book_id is not None:
            self.annotation_store.save(self.book_id, self.annotations.all())

    # -- handlers -----------------------------------------------------------

    def _jump_progress(self, event):
        if event.progress.chapter >= len(self.document):
            return NavigationBoundary(DOCUMENT_END, self.paginator.chapter)
        self.paginator.jump_to_progress(event.progress)
        return None

    def _resize(self, event):
        self.paginator.set_viewport(self.viewport.resized(event.width, event.height))

    def _zoom(self, event):
        text_size = self.settings.clamp_zoom(
            self.viewport.text_size + event.steps * self.settings.zoom_step
        )
        self.paginator.set_viewport(self.viewport.zoomed(text_size))
        self.message = f"Text size {text_size:g}x"

    def _adjust_margin(self, event):
        margin = min(MAX_MARGIN, max(0, self.viewport.margin + event.delta))
        self.paginator.set_viewport(self.viewport.with_margin(margin))
        self.message = f"Margin {margin}"

    def _toggle_auto_scroll(self, event):
        self.paginator.toggle_auto_scroll(self.settings.auto_scroll_interval)
        self.message = "Auto-scroll on" if self.paginator.auto_scroll else "Auto-scroll off"

    def _tick(self, event):
        if self.paginator.auto_scroll_due(event.now):
            return self.paginator.auto_scroll_tick(event.now)
        return None

    def _chapter(self):
        return self.document.chapter(self.paginator.chapter)

    def _follow_cursor(self):
        cursor = self.selection.cursor_range()
        if cursor is not None:
            lines = self.paginator.lines()
            self.paginator.ensure_visible(locate_line(lines, cursor.start, structural=False))
        self.needs_redraw = True

    def _enter_select(self, event):
        if not self.selection.enter_select(self._chapter(), self.paginator.top_line().start):
            self.message = "Nothing to select"
            return
        self._follow_cursor()

    def _move_cursor(self, event):
        self.selection.move(event.motion, self.paginator.lines())
        self._follow_cursor()

    def _annotate(self, kind, note=None):
        chapter, selected = self.selection.confirm()
        self.annotations.add(chapter, selected, kind, note)
        self._save_annotations()
        self.needs_redraw = True

    def _highlight(self, event):
        self._annotate(AnnotationKind.HIGHLIGHT)
        self.message = "Highlighted"

    def _add_note(self, event):
        text = event.text.strip()
        if not text:
            self.message = "Empty note discarded"
            return
        self._annotate(AnnotationKind.NOTE, text)
        self.message = "Note added"

    def _remove_annotation(self, event):
        if event.annotation_id is not None:
            try:
                self.annotations.remove(event.annotation_id)
            except KeyError:
                self.message = "No such annotation"
                return
            removed = 1
        else:
            cursor = self.selection.cursor_range()
            if cursor is None:
                self.message = "Nothing to remove"
                return
            found = self.annotations.overlapping(self.selection.chapter, cursor.start, cursor.end)
            for annotation in found:
                self.annotations.remove(annotation.id)
            removed = len(found)
        if removed:
            self._save_annotations()
        self.message = f"Removed {removed} annotation{'s' if removed != 1 else ''}"
        self.needs_redraw = True

    def _cancel(self, event):
        if self.view is not None:
            self.view = None
        else:
            self.selection.cancel()
            self.lookup = None
        self.needs_redraw = True

    def _define(self, word):
        if not word or self.dictionary is None:
            return None
        try:
            return self.dictionary.define(word)
        except OSError as exc:
            logger.warning("Dictionary lookup for %r failed: %s", word, exc)
            return None

    def _lookup_word(self, event):
        word = self.selection.begin_lookup(self._chapter(), self.paginator.top_line().start)
        if word is None:
            self.message = "No word here"
            return
        cleaned = clean_word(word)
        self.lookup = (cleaned or word, self._define(cleaned) or NO_DEFINITION)
        self.needs_redraw = True

    def offset_at(self, row, col):
        """Logical offset of the character drawn at screen (row, col), or None."""
        geometry = line_geometry(self.viewport, self.layout)
        top = 0
        for line in self.paginator.visible_window():
            if top <= row < top + line.rows:
                break
            top += line.rows
        else:
            return None
        if line.image is not None or not line.text:
            return None
        cell = col - geometry.left - text_width(line.prefix) * (geometry.gap + 1)
        if cell < 0:
            return None
        cell //= geometry.gap + 1
        used = 0
        for index, ch in enumerate(line.text):
            used += char_width(ch)
            if used > cell:
                return line.start + index
        return None

    def _click(self, event):
        offset = self.offset_at(event.row, event.col)
        if offset is None:
            return
        chapter = self._chapter()
        if self.mode is Mode.BROWSE:
            if not self.selection.enter_select(chapter, offset):
                return
        self.selection.place(chapter, offset)
        self.needs_redraw = True

    def _find(self, chapter, start):
        pattern = re.compile(re.escape(self.search_query), re.IGNORECASE)
        count = len(self.document)
        for step in range(count + 1):
            index = (chapter + step) % count
            match = pattern.search(self.document.chapter(index).text, start if step == 0 else 0)
            if match:
                return index, match.start()
        return None

    def _goto_match(self, chapter, start):
        found = self._find(chapter, start)
        if found is None:
            self.message = f"Not found: {self.search_query}"
            return
        self._last_match = found
        self.paginator.jump_to_position(LogicalPosition(*found))
        if found < (chapter, start):
            self.message = "Search wrapped to the beginning"

    def _search(self, event):
        query = event.query.strip()
        if not query:
            return
        self.search_query = query
        self._goto_match(self.paginator.chapter, self.paginator.top_line().start)

    def _search_next(self, event):
        if not self.search_query:
            self.message = "No previous search"
            return
        if self._last_match is not None and self._last_match[0] == self.paginator.chapter:
            start = self._last_match[1] + 1
        else:
            start = self.paginator.top_line().start
        self._goto_match(self.paginator.chapter, start)

    # -- list views ---------------------------------------------------------

    def _open_contents(self, event):
        if self.view is not None:
            self.view = None
            return
        current = self.paginator.chapter
        entries = []
        for chapter in self.document:
            title = chapter.title or f"Chapter {chapter.index + 1}"
            prefix = ">> " if chapter.index == current else "   "
            entries.append((prefix + title, chapter.index))
        self.view = ListView(Mode.CONTENTS, "Table of Contents", entries, current)

    def _annotation_entries(self, kind):
        entries = []
        for annotation in self.annotations.all():
            if kind is not None and annotation.kind is not kind:
                continue
            text = self.document.chapter(annotation.chapter).text
            excerpt = " ".join(text[annotation.start:annotation.end].split())
            label = f"{annotation.chapter + 1}: {excerpt}"
            if annotation.note:
                label += f" [{annotation.note}]"
            entries.append((label, annotation))
        return entries

    def _open_annotations(self, event):
        if self.view is not None:
            self.view = None
            return
        self.view = ListView(Mode.ANNOTATIONS, "", [])
        self._filter_annotations(FilterAnnotations())

    def _filter_annotations(self, event):
        kind = None if event.kind is None else AnnotationKind(event.kind)
        self.view.kind = kind
        self.view.entries = self._annotation_entries(kind)
        self.view.index = 0
        self.view.title = f"Annotations: {FILTER_LABELS[kind]}"

    def _move_list_cursor(self, event):
        if self.view.entries:
            self.view.index = max(0, min(len(self.view.entries) - 1, self.view.index + event.delta))

    def _choose(self, event):
        view, self.view = self.view, None
        if not view.entries:
            return None
        target = view.entries[view.index][1]
        if view.mode is Mode.CONTENTS:
            return self.paginator.jump_chapter(target)
        self.paginator.jump_to_position(LogicalPosition(target.chapter, target.start))
        return None

    def _toggle_theme(self, event):
        theme = "light" if self.renderer.theme == "dark" else "dark"
        self.renderer.set_theme(theme)
        self.message = f"{theme.capitalize()} theme"

    def _quit(self, event):
        self.quit_requested = True

    # -- overlay ------------------------------------------------------------

    def _overlay(self, window):
        chapter = self.paginator.chapter
        first, last = window[0].start, window[-1].end

        search = ()
        if self.search_query:
            pattern = re.compile(re.escape(self.search_query), re.IGNORECASE)
            text = self.document.chapter(chapter).text
            matches = pattern.finditer(text, max(0, first - len(self.search_query) + 1))
            search = tuple(
                m.span() for m in itertools.takewhile(lambda m: m.start() < last, matches)
                if m.end() > first
            )

        selection = cursor = None
        if self.selection.chapter == chapter and self.mode is not Mode.BROWSE:
            current = self.selection.cursor_range()
            if current is not None:
                cursor = (current.start, current.end)
            if self.selection.anchor is not None:
                selected = self.selection.selection_range()
                selection = (selected.start, selected.end)

        return Overlay(
            annotations=tuple(self.annotations.query(chapter)),
            search=search,
            selection=selection,
            cursor=cursor,
            message=self.message,
            lookup=self.lookup,
            panel=None if self.view is None else (self.view.title, self.view.labels(), self.view.index),
        )
