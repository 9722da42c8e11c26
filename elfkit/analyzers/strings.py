"""
Printable String Extractor (strings)
=====================================

Finds contiguous runs of printable ASCII bytes (0x20-0x7E) in arbitrary
binary data, in file order.  Runs shorter than the minimum length are
noise; runs longer than ``max_run`` are discarded as well, so a large
block of text never turns into one unbounded output line.

References:
    - strings(1) Unix utility algorithm.
"""

from __future__ import annotations

import re

from elfkit.core.errors import ValidationError

MIN_LENGTH_RANGE: tuple[int, int] = (1, 100)


class StringExtractor:
    """Printable-run scanner.

    Usage::

        extractor = StringExtractor(min_length=6)
        for offset, text in extractor.extract(data):
            print(f"{offset:x} {text}")

    Args:
        min_length: Shortest run reported; must be in 1..100.
        max_run: Longest run reported.

    Raises:
        ValidationError: If *min_length* is outside 1..100.
    """

    def __init__(self, min_length: int = 4, max_run: int = 10_000) -> None:
        low, high = MIN_LENGTH_RANGE
        if not low <= min_length <= high:
            raise ValidationError(
                f"invalid minimum string length {min_length} "
                f"(must be {low}..{high})"
            )
        self._min_length = min_length
        self._max_run = max_run
        self._pattern = re.compile(rb"[\x20-\x7e]{%d,}" % min_length)

    @property
    def min_length(self) -> int:
        return self._min_length

    def extract(self, data: bytes) -> list[tuple[int, str]]:
        """Return ``(offset, text)`` for each qualifying run."""
        return [
            (match.start(), match.group().decode("ascii"))
            for match in self._pattern.finditer(data)
            if len(match.group()) <= self._max_run
        ]


def extract_strings(data: bytes, min_length: int = 4, max_run: int = 10_000) -> list[str]:
    """Printable runs of *data*, in order."""
    return [text for _, text in StringExtractor(min_length, max_run).extract(data)]
