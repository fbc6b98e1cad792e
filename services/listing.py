"""One-level directory listings."""

from __future__ import annotations

import os
import stat
import unicodedata
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from services.errors import InvalidPath, NotADirectory, NotFound, ReadFailure
from services.paths import DirectoryNode, PathResolver, ResolvedPath, iso_instant


@dataclass(frozen=True)
class Entry:
    name: str
    logical_path: str
    is_directory: bool
    size: int
    modified: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.logical_path,
            "isFolder": self.is_directory,
            "size": self.size,
            "modified": self.modified,
        }


def _primary(text: str) -> Tuple[Tuple[int, str], ...]:
    # Punctuation and symbols sort before digits, digits before letters.
    return tuple((2 if c.isalpha() else 1 if c.isdigit() else 0, c) for c in text)


def collation_key(name: str) -> Tuple[Any, ...]:
    """Locale-style ordering: accents and case only break ties, lowercase first."""
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return (_primary(base.casefold()), decomposed.casefold(), name.swapcase())


def sort_entries(entries: List[Entry]) -> List[Entry]:
    return sorted(entries, key=lambda e: (not e.is_directory, collation_key(e.name)))


class DirectoryLister:
    def __init__(self, resolver: PathResolver) -> None:
        self.resolver = resolver

    def _entry(self, parent: ResolvedPath, name: str) -> Entry:
        child = parent.child(name)
        try:
            st = os.stat(child.abs_path)
        except OSError as e:
            # One unreadable child fails the whole listing.
            raise ReadFailure(f"cannot stat {child.logical}: {e.strerror or e}", path=child.logical)
        is_dir = stat.S_ISDIR(st.st_mode)
        return Entry(
            name=name,
            logical_path=child.logical,
            is_directory=is_dir,
            size=0 if is_dir else int(st.st_size),
            modified=iso_instant(st.st_mtime),
        )

    def list(self, logical: str | None = "/") -> List[Entry]:
        try:
            node = self.resolver.lookup(logical)
        except InvalidPath as e:
            raise NotFound("directory not found", path=e.path)
        if not isinstance(node, DirectoryNode):
            raise NotADirectory(f"{node.path.logical} is not a directory", path=node.path.logical)

        try:
            names = os.listdir(node.path.abs_path)
        except FileNotFoundError:
            raise NotFound("directory not found", path=node.path.logical)
        except OSError as e:
            raise ReadFailure(f"cannot list {node.path.logical}: {e.strerror or e}", path=node.path.logical)

        return sort_entries([self._entry(node.path, n) for n in names])


def list_payload(entries: List[Entry]) -> List[Dict[str, Any]]:
    return [e.to_dict() for e in entries]
