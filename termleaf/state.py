"""
JSON files for reading progress and annotations.

These implement the persistence collaborators the session hands progress
and annotations to. Books are keyed by an id chosen by the caller (the
console script uses the absolute file path). A file that cannot be parsed is
logged and treated as empty; failures to write propagate.
"""

import datetime
import json
import logging
import os

from termleaf.annotations import Annotation
from termleaf.errors import ContractViolation
from termleaf.position import ReadingProgress

logger = logging.getLogger(__name__)


def config_dir():
    """Return the per-user configuration directory, creating it when possible."""
    override = os.getenv("TERMLEAF_CONFIG_DIR")
    if override:
        path = override
    elif os.getenv("HOME") is not None:
        home = os.getenv("HOME")
        if os.path.isdir(os.path.join(home, ".config")):
            path = os.path.join(home, ".config", "termleaf")
        else:
            path = os.path.join(home, ".termleaf")
    elif os.getenv("USERPROFILE") is not None:
        path = os.path.join(os.getenv("USERPROFILE"), ".termleaf")
    else:
        return None
    os.makedirs(path, exist_ok=True)
    return path


class _JsonFile:
    filename = None

    def __init__(self, path=None):
        if path is None:
            directory = config_dir()
            path = os.path.join(directory, self.filename) if directory else os.devnull
        self.path = path

    def _read(self):
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring state file %s: expected a JSON object", self.path)
            return {}
        return data

    def _write(self, data):
        if self.path == os.devnull:
            return
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=4, ensure_ascii=False)


class ProgressFile(_JsonFile):
    """Reading progress per book, plus which book was read last."""

    filename = "state.json"

    def load(self, book_id):
        entry = self._read().get(book_id)
        if not isinstance(entry, dict):
            return None
        try:
            return ReadingProgress(int(entry["chapter"]), float(entry["fraction"]))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring saved progress for %s: %s", book_id, exc)
            return None

    def save(self, book_id, progress):
        data = self._read()
        for entry in data.values():
            if isinstance(entry, dict):
                entry["lastread"] = False
        data[book_id] = {
            "chapter": progress.chapter,
            "fraction": progress.fraction,
            "lastread": True,
            "saved": datetime.datetime.now().isoformat(),
        }
        self._write(data)

    def history(self):
        """Book ids in the order they were first saved."""
        return list(self._read().keys())

    def last_read(self):
        for book_id, entry in self._read().items():
            if isinstance(entry, dict) and entry.get("lastread"):
                return book_id
        return None

    def forget(self, book_id):
        data = self._read()
        if data.pop(book_id, None) is not None:
            self._write(data)


class AnnotationFile(_JsonFile):
    filename = "annotations.json"

    def load(self, book_id):
        records = self._read().get(book_id, [])
        if not isinstance(records, list):
            logger.warning("Ignoring annotations for %s: expected a list", book_id)
            return []
        annotations = []
        for record in records:
            try:
                annotations.append(Annotation.from_dict(record))
            except ContractViolation as exc:
                logger.warning("Skipping annotation for %s: %s", book_id, exc)
        return annotations

    def save(self, book_id, annotations):
        data = self._read()
        data[book_id] = [annotation.to_dict() for annotation in annotations]
        self._write(data)
