"""Resource identifiers and their decomposition into prefix-tree keys."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath, PurePosixPath
from urllib.parse import quote, unquote, urlsplit

_FILE_SCHEME = "file"


@dataclass(frozen=True, slots=True)
class Uri:
    """Minimal ``scheme://authority/path`` resource identifier."""

    scheme: str
    authority: str = ""
    path: str = ""

    @classmethod
    def parse(cls, value: str) -> Uri:
        """Parse a URI string such as ``file:///src/app.py``."""
        parts = urlsplit(value)
        if not parts.scheme:
            msg = f"URI has no scheme: {value!r}"
            raise ValueError(msg)
        return cls(scheme=parts.scheme, authority=parts.netloc, path=unquote(parts.path))

    @classmethod
    def file(cls, path: str | PurePath) -> Uri:
        """Build a ``file`` URI from a filesystem path."""
        posix = PurePath(path).as_posix()
        if not posix.startswith("/"):
            posix = f"/{posix}"
        return cls(scheme=_FILE_SCHEME, path=posix)

    @property
    def fs_path(self) -> PurePosixPath:
        """Path component as a POSIX path."""
        return PurePosixPath(self.path)

    @property
    def name(self) -> str:
        """Last path segment."""
        return self.path.rsplit("/", 1)[-1]

    def __str__(self) -> str:
        return f"{self.scheme}://{self.authority}{quote(self.path)}"


def tree_path_for_uri(uri: Uri) -> list[str]:
    """Decompose *uri* into ``[scheme, authority, *path segments]``."""
    return [uri.scheme, uri.authority, *uri.path.split("/")]


def tree_path_to_uri(path: list[str] | tuple[str, ...]) -> Uri:
    """Inverse of :func:`tree_path_for_uri` for a (possibly partial) key."""
    scheme = path[0] if path else ""
    authority = path[1] if len(path) > 1 else ""
    return Uri(scheme=scheme, authority=authority, path="/".join(path[2:]))
