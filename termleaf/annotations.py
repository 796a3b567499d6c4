"""
Highlights and notes anchored to logical ranges.

Anchors are (chapter index, [start, end)) values, never visual lines, so
annotations stay put through any number of reflows. Overlapping annotations
are allowed and never merged.
"""

import datetime
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from termleaf.document import LogicalRange
from termleaf.errors import ContractViolation

logger = logging.getLogger(__name__)


class AnnotationKind(Enum):
    HIGHLIGHT = "highlight"
    NOTE = "note"


@dataclass(frozen=True)
class Annotation:
    id: str
    chapter: int
    start: int
    end: int
    kind: AnnotationKind
    note: Optional[str] = None
    created: str = ""

    @property
    def range(self):
        return LogicalRange(self.start, self.end)

    def sort_key(self):
        return self.chapter, self.start, self.end, self.created

    def to_dict(self):
        return {
            "id": self.id,
            "chapter": self.chapter,
            "start": self.start,
            "end": self.end,
            "kind": self.kind.value,
            "note": self.note,
            "created": self.created,
        }

    @classmethod
    def from_dict(cls, data):
        try:
            return cls(
                id=str(data["id"]),
                chapter=int(data["chapter"]),
                start=int(data["start"]),
                end=int(data["end"]),
                kind=AnnotationKind(data["kind"]),
                note=data.get("note"),
                created=str(data.get("created", "")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ContractViolation(f"malformed annotation record {data!r}: {exc}") from exc


class AnnotationStore:
    """
    In-memory annotation store for one document.

    When constructed with the document, ranges are checked against chapter
    bounds on the way in.
    """

    def __init__(self, document=None, annotations=()):
        self.document = document
        self._items = {}
        self.load(annotations)

    def __len__(self):
        return len(self._items)

    def __contains__(self, annotation_id):
        return annotation_id in self._items

    def __iter__(self):
        return iter(self.all())

    def _check(self, chapter, start, end):
        if start < 0 or end <= start:
            raise ContractViolation(f"annotation range [{start}, {end}) is empty or inverted")
        if self.document is not None:
            self.document.chapter(chapter).check_range(start, end)

    def load(self, annotations, strict=True):
        """
        Replace the contents with ``annotations``, as handed over by persistence.

        With ``strict`` off, annotations that do not fit the document are
        logged and dropped instead of raising ContractViolation.
        """
        items = {}
        for annotation in annotations:
            try:
                self._check(annotation.chapter, annotation.start, annotation.end)
            except ContractViolation as exc:
                if strict:
                    raise
                logger.warning("Dropping annotation %s: %s", annotation.id, exc)
                continue
            items[annotation.id] = annotation
        self._items = items

    def add(self, chapter, logical_range, kind=AnnotationKind.HIGHLIGHT, note=None):
        if not isinstance(logical_range, LogicalRange):
            logical_range = LogicalRange(*logical_range)
        kind = AnnotationKind(kind)
        self._check(chapter, logical_range.start, logical_range.end)
        annotation = Annotation(
            id=uuid.uuid4().hex,
            chapter=chapter,
            start=logical_range.start,
            end=logical_range.end,
            kind=kind,
            note=note,
            created=datetime.datetime.now().isoformat(),
        )
        self._items[annotation.id] = annotation
        return annotation.id

    def remove(self, annotation_id):
        """Remove and return an annotation; unknown ids raise KeyError."""
        return self._items.pop(annotation_id)

    def get(self, annotation_id):
        return self._items[annotation_id]

    def query(self, chapter, kind=None):
        """Annotations of ``chapter`` ordered by range start."""
        if kind is not None:
            kind = AnnotationKind(kind)
        found = [
            a for a in self._items.values()
            if a.chapter == chapter and (kind is None or a.kind is kind)
        ]
        return sorted(found, key=Annotation.sort_key)

    def overlapping(self, chapter, start, end):
        """Annotations of ``chapter`` that share at least one offset with [start, end)."""
        return [a for a in self.query(chapter) if a.start < end and start < a.end]

    def all(self):
        return sorted(self._items.values(), key=Annotation.sort_key)
