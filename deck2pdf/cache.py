"""Caller-owned cache of parsed decks, keyed by a hash of the source text."""

from __future__ import annotations

import hashlib
import logging
import threading

from .models import Deck
from .parser import parse_deck

logger = logging.getLogger(__name__)


def content_hash(text: str) -> str:
    """SHA-256 hex digest of *text* (UTF-8)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class DeckCache:
    """Holds the most recently parsed deck.

    A changed source text replaces the cached deck wholesale; nothing is
    mutated in place.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._key: str | None = None
        self._deck: Deck | None = None
        self.hits = 0
        self.misses = 0

    @property
    def key(self) -> str | None:
        return self._key

    def get(self, text: str) -> Deck:
        key = content_hash(text)
        with self._lock:
            if key == self._key and self._deck is not None:
                self.hits += 1
                return self._deck

        deck = parse_deck(text)
        with self._lock:
            self._key = key
            self._deck = deck
            self.misses += 1
        logger.debug("Deck cache miss (%s…): %d slide(s)", key[:12], len(deck.slides))
        return deck

    def invalidate(self) -> None:
        with self._lock:
            self._key = None
            self._deck = None
