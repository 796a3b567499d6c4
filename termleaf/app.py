"""\
Usages:
    termleaf             read last file
    termleaf FILE        read FILE (plain text or Markdown)

Options:
    -r              print reading history
    -g PROTOCOL     graphics protocol: kitty, sixel, iterm2 or none
    -h, --help      print short, long help
    -v, --version   print version
    --clean         forget reading progress and annotations
    --debug         write debug log to the config directory

Key Binding:
    Quit             : q
    Scroll down      : DOWN      j
    Scroll up        : UP        k
    Page down        : PGDN      RIGHT   SPC     l
    Page up          : PGUP      LEFT    h
    Next chapter     : n
    Prev chapter     : p
    Beginning of ch  : HOME      g
    End of ch        : END       G
    Zoom in / out    : +         -
    Margin           : [         ]
    Auto-scroll      : a
    Search           : /
    Next occurrence  : N
    Dictionary       : d
    Select mode      : s
    ToC              : TAB       t
    Annotations      : A
    Switch theme     : c

Lists (ToC, Annotations):
    Move             : j  k      UP      DOWN
    Jump             : ENTER
    Filter           : 1 all     2 highlights    3 notes
    Back             : ESC       q

Select Mode:
    Move by word     : w  b      LEFT    RIGHT
    Move by line     : j  k      UP      DOWN
    Visual selection : v
    Highlight        : y         ENTER
    Note             : a
    Remove           : x
    Back             : ESC       q
"""

import curses
import logging
import os
import re
import shutil
import sys
import time

from termleaf import __author__, __license__, __url__, __version__, textdoc
from termleaf.config import load_settings
from termleaf.dictionary import WebDictionary
from termleaf.errors import TermleafError
from termleaf.events import AddNote, Click, Resize, Search, Tick
from termleaf.graphics import GraphicsProtocol, TerminalCapabilities
from termleaf.keymap import NOTE_PROMPT, SEARCH_PROMPT, translate
from termleaf.reflow import ViewportState
from termleaf.session import ReaderSession
from termleaf.state import AnnotationFile, ProgressFile, config_dir

logger = logging.getLogger(__name__)


MIN_COLS = 22
MIN_ROWS = 12


def configure_logging(debug=False):
    """Send log records to debug.log in the config dir; never to the screen we draw on."""
    directory = config_dir()
    if directory is None:
        logging.basicConfig(handlers=[logging.NullHandler()])
        return
    logging.basicConfig(
        filename=os.path.join(directory, "debug.log"),
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def prompt(stdscr, title, label, max_length=60):
    """Single-line input box. Enter accepts, ESC cancels."""
    rows, cols = stdscr.getmaxyx()
    width = min(cols - 2, max(len(label) + max_length // 2, 30))
    dialog = curses.newwin(3, width, (rows - 3) // 2, (cols - width) // 2)
    dialog.box()
    dialog.addstr(0, 2, title[:width - 4])
    dialog.addstr(1, 2, label[:width - 4])
    dialog.keypad(True)
    curses.curs_set(1)

    text = ""
    start = 2 + len(label)
    room = max(1, width - start - 2)
    while True:
        shown = text[-room:]
        dialog.addstr(1, start, shown.ljust(room)[:room])
        dialog.move(1, start + len(shown))
        dialog.refresh()
        key = dialog.get_wch()
        if key == "\x1b":
            text = None
            break
        if key in ("\n", "\r", curses.KEY_ENTER):
            break
        if key in ("\b", "\x7f", curses.KEY_BACKSPACE):
            text = text[:-1]
        elif isinstance(key, str) and key.isprintable() and len(text) < max_length:
            text += key

    curses.curs_set(0)
    curses.flushinp()
    del dialog
    stdscr.clear()
    stdscr.refresh()
    return text


def run(stdscr, path, settings, capabilities, out=None):
    out = out or sys.stdout
    try:
        curses.curs_set(0)
    except curses.error:
        pass
    stdscr.keypad(True)
    curses.mousemask(curses.BUTTON1_CLICKED | curses.BUTTON1_PRESSED)
    stdscr.clear()
    stdscr.refresh()

    document = textdoc.load(path)
    rows, cols = stdscr.getmaxyx()
    session = ReaderSession(
        capabilities,
        images=textdoc.FileImages(os.path.dirname(os.path.abspath(path))),
        settings=settings,
        progress_store=ProgressFile(),
        annotation_store=AnnotationFile(),
        dictionary=WebDictionary(),
        viewport=ViewportState(cols, rows, settings.text_size, settings.margin),
    )
    session.open(document, os.path.abspath(path))
    try:
        while not session.quit_requested:
            if session.needs_redraw:
                out.write(session.render_frame())
                out.flush()

            wait = session.next_tick_in()
            stdscr.timeout(-1 if wait is None else max(1, int(wait * 1000)))
            key = stdscr.getch()

            if key == -1:
                session.handle_input(Tick(time.monotonic()))
                continue
            if key == curses.KEY_RESIZE:
                rows, cols = stdscr.getmaxyx()
                session.handle_input(Resize(max(1, cols), max(1, rows)))
                continue
            if key == curses.KEY_MOUSE:
                try:
                    _, x, y, _, _ = curses.getmouse()
                except curses.error:
                    continue
                session.handle_input(Click(y, x))
                continue

            event = translate(key, session.mode)
            if event == SEARCH_PROMPT:
                query = prompt(stdscr, "Search", "Find: ")
                event = Search(query) if query else None
                session.invalidate()
            elif event == NOTE_PROMPT:
                text = prompt(stdscr, "Note", "Note: ", max_length=200)
                event = AddNote(text) if text else None
                session.invalidate()
            if event is not None:
                session.handle_input(event)
    finally:
        session.close()


def capabilities_from(args):
    """Build the capability descriptor from -g and the environment."""
    name = os.getenv("TERMLEAF_GRAPHICS", "none")
    if "-g" in args:
        position = args.index("-g")
        if position + 1 >= len(args):
            sys.exit("ERROR: -g needs a protocol name.")
        name = args[position + 1]
        del args[position:position + 2]
    try:
        graphics = GraphicsProtocol(name)
    except ValueError:
        sys.exit(f"ERROR: Unknown graphics protocol {name!r}.")
    truecolor = os.getenv("COLORTERM", "") in ("truecolor", "24bit")
    return TerminalCapabilities(graphics, truecolor=truecolor)


def main():
    termc, termr = shutil.get_terminal_size()

    args = []
    if sys.argv[1:] != []:
        args += sys.argv[1:]

    if len({"-h", "--help"} & set(args)) != 0:
        hlp = __doc__.rstrip()
        if "-h" in args:
            hlp = re.search("(\n|.)*(?=\n\nKey)", hlp).group()
        print(hlp)
        sys.exit()

    if len({"-v", "--version", "-V"} & set(args)) != 0:
        print(__version__)
        print(__license__, "License")
        print("Copyright (c) 2026", __author__)
        print(__url__)
        sys.exit()

    debug = "--debug" in args or bool(os.getenv("TERMLEAF_DEBUG"))
    if "--debug" in args:
        args.remove("--debug")
    configure_logging(debug)

    progress = ProgressFile()

    if len({"--clean", "--reset"} & set(args)) != 0:
        cleaned = []
        for store in (progress, AnnotationFile()):
            if os.path.exists(store.path) and store.path != os.devnull:
                os.remove(store.path)
                cleaned.append(store.path)
        if cleaned:
            print("Cleaned up the following state files:")
            for f in cleaned:
                print(f"  - {f}")
        else:
            print("No state files found.")
        sys.exit()

    if "-r" in args:
        history = progress.history()
        last = progress.last_read()
        print("Reading history:")
        dig = len(str(len(history) + 1))
        for n, book in enumerate(history):
            print(str(n + 1).rjust(dig) + ("* " if book == last else "  ") + book)
        sys.exit()

    capabilities = capabilities_from(args)

    if args == []:
        path = progress.last_read()
        if not path or not os.path.isfile(path):
            print(__doc__)
            sys.exit("ERROR: Found no last read file.")
    elif os.path.isfile(args[0]):
        path = args[0]
    else:
        sys.exit(f"ERROR: No such file: {args[0]}")

    try:
        settings = load_settings()
    except TermleafError as e:
        sys.exit(f"ERROR: {e}")

    if termc < MIN_COLS or termr < MIN_ROWS:
        sys.exit(f"ERR: Screen was too small (min {MIN_COLS}cols x {MIN_ROWS}rows).")
    try:
        curses.wrapper(run, path, settings, capabilities)
    except TermleafError as e:
        logger.exception("Reader stopped")
        sys.exit(f"ERROR: {e}")
