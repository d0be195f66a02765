"""Generation tokens for superseding in-flight work.

A ``GenerationTracker`` hands out strictly increasing integers for one
operation stream.  Work started under a token may only apply its result if
that token is still the latest one when the result is ready; otherwise the
result is dropped.  Nothing is cancelled, only its effect is suppressed.
"""

from __future__ import annotations

import logging


class GenerationTracker:
    """Issues tokens for a single operation stream (e.g. "search")."""

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._latest = 0
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def latest(self) -> int:
        """The most recently issued token (0 before any is issued)."""
        return self._latest

    def next(self) -> int:
        """Issue a new token, invalidating every earlier one."""
        self._latest += 1
        self.logger.debug("%s generation -> %d", self.name, self._latest)
        return self._latest

    def is_current(self, token: int) -> bool:
        """Return True iff ``token`` is the latest issued token."""
        return token == self._latest

    def __repr__(self) -> str:
        return f"GenerationTracker(name={self.name!r}, latest={self._latest})"
