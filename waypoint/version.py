#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Migration version identifiers.

Versions are dotted numeric strings ("1", "1.2", "2.0.1"). They compare
numerically part by part, so "1.10" sorts after "1.9" and "1.0" equals "1".
Two sentinels bracket every real version:

- EMPTY: lower than any version ("no baseline")
- LATEST: higher than any version ("no ceiling")
"""
import re
from functools import total_ordering
from typing import Optional, Union

from packaging import version as pkg_version


@total_ordering
class MigrationVersion:
    """
    Immutable, totally ordered migration version.

    Underscores are accepted as separators so file names such as
    ``V1_2__add_index.sql`` map to version ``1.2``.

    Example:
        >>> MigrationVersion('1.10') > MigrationVersion('1.9')
        True
        >>> MigrationVersion('1.0') == MigrationVersion('1')
        True
    """

    VERSION_PATTERN = re.compile(r'^\d+(\.\d+)*$')

    __slots__ = ('_raw', '_parsed', '_rank')

    def __init__(self, raw: str, _rank: int = 0):
        """
        Args:
            raw: Version string, dots or underscores between numeric parts

        Raises:
            ValueError: If the string is not a dotted numeric version
        """
        if _rank:
            # Sentinel construction
            self._raw = raw
            self._parsed = None
            self._rank = _rank
            return

        normalized = str(raw).strip().replace('_', '.')
        if not self.VERSION_PATTERN.match(normalized):
            raise ValueError(f"Invalid migration version: '{raw}'")

        self._raw = normalized
        self._parsed = pkg_version.Version(normalized)
        self._rank = 0

    @classmethod
    def parse(
        cls,
        value: Union[str, int, 'MigrationVersion', None]
    ) -> 'MigrationVersion':
        """
        Build a version from user input.

        ``None``, ``''`` and ``'latest'`` (any case) map to LATEST,
        ``'empty'`` maps to EMPTY.
        """
        if isinstance(value, MigrationVersion):
            return value
        if value is None:
            return LATEST
        text = str(value).strip()
        if not text or text.lower() == 'latest':
            return LATEST
        if text.lower() == 'empty':
            return EMPTY
        return cls(text)

    @property
    def is_latest(self) -> bool:
        return self._rank > 0

    @property
    def is_empty(self) -> bool:
        return self._rank < 0

    @property
    def parts(self) -> tuple:
        """Numeric parts with trailing zeros removed."""
        if self._parsed is None:
            return ()
        release = list(self._parsed.release)
        while len(release) > 1 and release[-1] == 0:
            release.pop()
        return tuple(release)

    def _key(self) -> tuple:
        # Sentinels sort outside every real version
        if self._rank:
            return (self._rank, ())
        return (0, self.parts)

    def __eq__(self, other) -> bool:
        if not isinstance(other, MigrationVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: 'MigrationVersion') -> bool:
        if not isinstance(other, MigrationVersion):
            return NotImplemented
        if self._rank or other._rank:
            return self._key() < other._key()
        return self._parsed < other._parsed

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self._raw

    def __repr__(self) -> str:
        return f"<MigrationVersion({self._raw})>"


EMPTY = MigrationVersion('<< Empty Schema >>', _rank=-1)
LATEST = MigrationVersion('<< Latest Version >>', _rank=1)


def max_version(*versions: Optional[MigrationVersion]) -> MigrationVersion:
    """Highest of the given versions, EMPTY when none are given."""
    present = [v for v in versions if v is not None]
    return max(present) if present else EMPTY
