"""Dictionary provider backed by the free dictionaryapi.dev service."""

import logging

import requests

logger = logging.getLogger(__name__)


API_URL = "https://api.dictionaryapi.dev/api/v2/entries/en/{}"


def format_entries(entries):
    """Turn the service's JSON entries into plain text, or None when empty."""
    parts = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        if entry.get("word"):
            parts.append(entry["word"].upper())
        for meaning in entry.get("meanings", []):
            if meaning.get("partOfSpeech"):
                parts.append(f"[{meaning['partOfSpeech']}]")
            for number, definition in enumerate(meaning.get("definitions", []), 1):
                if definition.get("definition"):
                    parts.append(f"{number}. {definition['definition']}")
    return "\n".join(parts) or None


class WebDictionary:
    """
    Looks words up over HTTP.

    Unknown words give None. Network failures raise requests.RequestException,
    which is an OSError, so callers can treat them like any other I/O error.
    """

    def __init__(self, url=API_URL, timeout=5):
        self.url = url
        self.timeout = timeout
        self._cache = {}

    def define(self, word):
        word = word.lower()
        if word in self._cache:
            return self._cache[word]
        r = requests.get(self.url.format(word), timeout=self.timeout)
        if r.status_code == 404:
            definition = None
        else:
            r.raise_for_status()
            try:
                definition = format_entries(r.json())
            except ValueError:
                logger.warning("Dictionary returned malformed data for %r", word)
                definition = None
        self._cache[word] = definition
        return definition
