# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
On-disk key sources.

Keys are read from plain UTF-8 text files, one secret per line. Lines that
are blank or start with '#' are ignored; everything else is trimmed and kept
in file order. Duplicates are kept as-is (each line is its own rotation slot).

A TieredKeySource evaluates an ordered list of KeyFileSource strategies and
stops at the first one that yields at least one key. Lower-priority files are
never merged in.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

lib_logger = logging.getLogger("gateway_rotator")


def parse_key_lines(content: str) -> List[str]:
    """Extract secrets from key file content."""
    keys = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        keys.append(line)
    return keys


@dataclass
class LoadedKeys:
    """Result of a successful source evaluation."""

    keys: List[str]
    source: Path


class KeyFileSource:
    """A single candidate key file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[List[str]]:
        """
        Return the keys in this file, or None if the file is missing, unreadable
        or holds no keys after comment/blank filtering.
        """
        if not self.path.is_file():
            return None
        try:
            content = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            lib_logger.error(f"Failed to read key file '{self.path}': {e}")
            return None

        keys = parse_key_lines(content)
        return keys or None

    def __repr__(self) -> str:
        return f"KeyFileSource({str(self.path)!r})"


class TieredKeySource:
    """
    Ordered chain of key files, most trusted tier first.

    The default chain for a KEYS_FILE of data/keys/keys.txt is:
        data/keys/keys_high.txt -> data/keys/active_keys.txt -> data/keys/keys.txt
    """

    def __init__(self, sources: Iterable[Union[KeyFileSource, str, Path]]):
        self.sources: List[KeyFileSource] = [
            s if isinstance(s, KeyFileSource) else KeyFileSource(s) for s in sources
        ]

    @classmethod
    def from_paths(cls, paths: Sequence[Union[str, Path]]) -> "TieredKeySource":
        return cls(KeyFileSource(p) for p in paths)

    def load(self) -> Optional[LoadedKeys]:
        for source in self.sources:
            keys = source.load()
            if keys:
                return LoadedKeys(keys=keys, source=source.path)
        return None
