"""Exceptions raised by the fetch layer."""

from __future__ import annotations


class PredScanError(Exception):
    """Base error."""


class TransientNetworkError(PredScanError):
    """A retriable network failure that persisted after every retry."""

    def __init__(self, url: str, attempts: int, cause: BaseException) -> None:
        self.url = url
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"{url}: gave up after {attempts} attempts ({cause!r})")
