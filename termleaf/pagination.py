"""
Pagination and scroll control.

The Paginator owns the viewport, the current chapter and the index of the
top visible line in that chapter's layout. Layouts live in a LayoutCache;
after a chapter is laid out its neighbours are reflowed on a background
worker so that chapter changes are instant. The worker only ever fills the
cache, and results computed for a superseded viewport are dropped.
"""

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor

from termleaf.document import LogicalPosition
from termleaf.errors import (
    CHAPTER_END,
    DOCUMENT_END,
    DOCUMENT_START,
    ContractViolation,
    NavigationBoundary,
)
from termleaf.position import locate_line, position_for
from termleaf.reflow import DEFAULT_LAYOUT, reflow

logger = logging.getLogger(__name__)


class LayoutCache:
    """Bounded LRU of chapter layouts, safe to fill from a worker thread."""

    def __init__(self, capacity=16):
        self.capacity = capacity
        self.generation = 0
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, key):
        with self._lock:
            return key in self._entries

    def get(self, key):
        with self._lock:
            lines = self._entries.get(key)
            if lines is not None:
                self._entries.move_to_end(key)
            return lines

    def put(self, key, lines, generation=None):
        """Store a layout; returns False if it was computed before the last invalidate()."""
        with self._lock:
            if generation is not None and generation != self.generation:
                return False
            self._entries[key] = lines
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)
            return True

    def invalidate(self):
        with self._lock:
            self._entries.clear()
            self.generation += 1


class Paginator:
    def __init__(self, document, viewport, settings=None, cache=None, prefetch=True):
        if not len(document):
            raise ContractViolation("document has no chapters")
        self.document = document
        self.viewport = viewport
        self.settings = settings or DEFAULT_LAYOUT
        self.cache = cache if cache is not None else LayoutCache()
        self.chapter = 0
        self.offset = 0
        # seconds between auto-scroll ticks, None when off
        self.auto_scroll = None
        self._next_tick = None
        self._prefetch = prefetch
        self._executor = None
        self._pending = {}
        self._listeners = []

    # -- layout ---------------------------------------------------------

    def _key(self, index, viewport=None):
        return index, viewport or self.viewport, self.settings

    def lines(self, index=None):
        """Layout of chapter ``index`` (the current chapter by default)."""
        if index is None:
            index = self.chapter
        key = self._key(index)
        lines = self.cache.get(key)
        if lines is None:
            lines = reflow(self.document.chapter(index), self.viewport, self.settings)
            self.cache.put(key, lines)
            logger.debug("Laid out chapter %d: %d lines", index, len(lines))
        self._schedule_prefetch(index)
        return lines

    def _schedule_prefetch(self, index):
        if not self._prefetch:
            return
        self._collect()
        for neighbour in (index + 1, index - 1):
            if not 0 <= neighbour < len(self.document):
                continue
            key = self._key(neighbour)
            if key in self._pending or key in self.cache:
                continue
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="termleaf-prefetch"
                )
            self._pending[key] = self._executor.submit(
                self._prefetch_chapter, neighbour, self.viewport, self.cache.generation
            )

    def _prefetch_chapter(self, index, viewport, generation):
        lines = reflow(self.document.chapter(index), viewport, self.settings)
        if not self.cache.put(self._key(index, viewport), lines, generation=generation):
            logger.debug("Dropped stale layout of chapter %d", index)

    def _collect(self):
        for key, future in list(self._pending.items()):
            if future.done():
                del self._pending[key]
                error = future.exception()
                if error is not None:
                    logger.warning("Prefetch of chapter %d failed: %s", key[0], error)

    def wait_for_prefetch(self):
        """Block until background layouts have finished."""
        for future in list(self._pending.values()):
            future.exception()
        self._collect()

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self._collect()

    # -- listeners --------------------------------------------------------

    def add_listener(self, callback):
        """Call ``callback()`` whenever what is on screen may have changed."""
        self._listeners.append(callback)

    def _notify(self):
        for callback in self._listeners:
            callback()

    def _move_to(self, chapter, offset):
        self.chapter = chapter
        self.offset = offset
        self._notify()

    # -- queries ----------------------------------------------------------

    def top_line(self):
        return self.lines()[self.offset]

    def top_position(self):
        return LogicalPosition(self.chapter, self.top_line().start)

    def visible_window(self):
        """Lines from the top offset whose rows fit in the viewport height."""
        lines = self.lines()
        window = []
        rows = 0
        for line in lines[self.offset:]:
            if window and rows + line.rows > self.viewport.height:
                break
            window.append(line)
            rows += line.rows
        return window

    def last_page_offset(self, index=None):
        """Smallest offset at which the end of the chapter is visible."""
        lines = self.lines(index)
        rows = 0
        offset = len(lines)
        while offset > 0 and rows + lines[offset - 1].rows <= self.viewport.height:
            offset -= 1
            rows += lines[offset].rows
        return min(offset, len(lines) - 1)

    # -- navigation -------------------------------------------------------

    def scroll(self, delta):
        """
        Move the top line by ``delta`` lines.

        The offset is clamped to the chapter. Only a scroll that starts on
        the first or last line crosses into the neighbouring chapter. At the
        edges of the document a NavigationBoundary is returned.
        """
        if delta == 0:
            return None
        last = len(self.lines()) - 1
        if delta > 0 and self.offset >= last:
            if self.chapter + 1 >= len(self.document):
                return NavigationBoundary(DOCUMENT_END, self.chapter)
            self._move_to(self.chapter + 1, 0)
            return None
        if delta < 0 and self.offset <= 0:
            if self.chapter == 0:
                return NavigationBoundary(DOCUMENT_START, self.chapter)
            previous = self.lines(self.chapter - 1)
            self._move_to(self.chapter - 1, len(previous) - 1)
            return None
        self._move_to(self.chapter, max(0, min(last, self.offset + delta)))
        return None

    def scroll_page(self, pages):
        step = max(1, len(self.visible_window()))
        return self.scroll(pages * step)

    def ensure_visible(self, index):
        """Scroll the least amount needed to bring line ``index`` on screen."""
        if index < self.offset:
            self._move_to(self.chapter, index)
            return
        window = self.visible_window()
        if index >= self.offset + len(window):
            lines = self.lines()
            offset = index
            rows = lines[index].rows
            while offset > 0 and rows + lines[offset - 1].rows <= self.viewport.height:
                offset -= 1
                rows += lines[offset].rows
            self._move_to(self.chapter, offset)

    def jump_chapter(self, index):
        if index < 0:
            return NavigationBoundary(DOCUMENT_START, self.chapter)
        if index >= len(self.document):
            return NavigationBoundary(DOCUMENT_END, self.chapter)
        self.lines(index)
        self._move_to(index, 0)
        return None

    def next_chapter(self):
        return self.jump_chapter(self.chapter + 1)

    def prev_chapter(self):
        return self.jump_chapter(self.chapter - 1)

    def chapter_home(self):
        self._move_to(self.chapter, 0)

    def chapter_end(self):
        self._move_to(self.chapter, self.last_page_offset())

    def jump_to_position(self, position):
        chapter = self.document.chapter(position.chapter)
        if not 0 <= position.offset <= chapter.length:
            raise ContractViolation(
                f"offset {position.offset} is outside chapter {chapter.index} "
                f"of length {chapter.length}"
            )
        lines = self.lines(chapter.index)
        self._move_to(chapter.index, locate_line(lines, position.offset, structural=False))

    def jump_to_progress(self, progress):
        chapter = self.document.chapter(progress.chapter)
        self.jump_to_position(position_for(chapter, progress))

    def set_viewport(self, viewport):
        """
        Change the viewport, keeping the reader's place.

        The logical position of the top line is recorded, every cached
        layout is dropped, the chapter is reflowed and the top offset is
        moved to the line that now shows that position.
        """
        if viewport == self.viewport:
            return
        top = self.top_line()
        self.viewport = viewport
        self.cache.invalidate()
        lines = self.lines()
        self._move_to(self.chapter, locate_line(lines, top.start, structural=top.empty))

    # -- auto-scroll ------------------------------------------------------

    def start_auto_scroll(self, interval, now=None):
        if not interval > 0:
            raise ContractViolation(f"auto-scroll interval must be positive, got {interval}")
        now = time.monotonic() if now is None else now
        self.auto_scroll = interval
        self._next_tick = now + interval
        self._notify()

    def stop_auto_scroll(self):
        self.auto_scroll = None
        self._next_tick = None
        self._notify()

    def toggle_auto_scroll(self, interval, now=None):
        if self.auto_scroll is None:
            self.start_auto_scroll(interval, now)
        else:
            self.stop_auto_scroll()

    def next_tick_in(self, now=None):
        """Seconds until the next auto-scroll tick, or None when it is off."""
        if self._next_tick is None:
            return None
        now = time.monotonic() if now is None else now
        return max(0.0, self._next_tick - now)

    def auto_scroll_due(self, now=None):
        wait = self.next_tick_in(now)
        return wait is not None and wait <= 0

    def auto_scroll_tick(self, now=None):
        """
        Advance one line while auto-scroll is on.

        Auto-scroll never changes chapter: once the end of the chapter is on
        screen it switches itself off and returns a CHAPTER_END boundary.
        """
        if self.auto_scroll is None:
            return None
        end = self.last_page_offset()
        if self.offset < end:
            self._move_to(self.chapter, self.offset + 1)
        if self.offset >= end:
            self.stop_auto_scroll()
            return NavigationBoundary(CHAPTER_END, self.chapter)
        now = time.monotonic() if now is None else now
        self._next_tick = now + self.auto_scroll
        return None
