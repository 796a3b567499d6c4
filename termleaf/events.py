"""Logical input events accepted by ReaderSession.handle_input."""

from dataclasses import dataclass
from typing import Optional

from termleaf.annotations import AnnotationKind
from termleaf.position import ReadingProgress


@dataclass(frozen=True)
class ScrollLines:
    delta: int


@dataclass(frozen=True)
class ScrollPages:
    delta: int


@dataclass(frozen=True)
class ChapterStart:
    pass


@dataclass(frozen=True)
class ChapterEnd:
    pass


@dataclass(frozen=True)
class NextChapter:
    pass


@dataclass(frozen=True)
class PrevChapter:
    pass


@dataclass(frozen=True)
class JumpChapter:
    index: int


@dataclass(frozen=True)
class JumpProgress:
    progress: ReadingProgress


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class Zoom:
    """Change the text size by ``steps`` zoom steps (negative zooms out)."""

    steps: int


@dataclass(frozen=True)
class AdjustMargin:
    delta: int


@dataclass(frozen=True)
class ToggleAutoScroll:
    pass


@dataclass(frozen=True)
class Tick:
    """Timer wake-up from the control loop; ``now`` is a time.monotonic() value."""

    now: float


@dataclass(frozen=True)
class EnterSelect:
    pass


@dataclass(frozen=True)
class StartExtent:
    pass


@dataclass(frozen=True)
class MoveCursor:
    motion: str


@dataclass(frozen=True)
class Highlight:
    pass


@dataclass(frozen=True)
class AddNote:
    text: str


@dataclass(frozen=True)
class RemoveAnnotation:
    """Remove one annotation by id, or those under the cursor when id is None."""

    annotation_id: Optional[str] = None


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class LookupWord:
    pass


@dataclass(frozen=True)
class Dismiss:
    pass


@dataclass(frozen=True)
class Click:
    row: int
    col: int


@dataclass(frozen=True)
class Search:
    query: str


@dataclass(frozen=True)
class SearchNext:
    pass


@dataclass(frozen=True)
class OpenContents:
    """Show the table of contents, or hide it when it is already shown."""


@dataclass(frozen=True)
class OpenAnnotations:
    """Show the list of annotations, or hide it when it is already shown."""


@dataclass(frozen=True)
class FilterAnnotations:
    """Limit the annotation list to one kind; None lists every annotation."""

    kind: Optional[AnnotationKind] = None


@dataclass(frozen=True)
class MoveListCursor:
    delta: int


@dataclass(frozen=True)
class Choose:
    """Jump to the entry under the list cursor."""


@dataclass(frozen=True)
class ToggleTheme:
    pass


@dataclass(frozen=True)
class Quit:
    pass
