"""Immutable file-tree snapshots.

A Snapshot maps normalized repository-relative paths to file contents
(``str`` for text, ``bytes`` for anything else). Snapshots are never
modified: ``merge()`` is the only way to derive a new tree from an old one
plus a set of edits, and it always returns a fresh Snapshot.

Path rules:
- ``/`` separated; backslashes are treated as separators
- no leading/trailing slash, no empty or ``.`` segments (these are dropped)
- ``..`` segments and NUL characters are rejected
- a path cannot be both a file and a directory of another file
"""

import base64
import json
from collections.abc import ItemsView, Iterator, Mapping
from types import MappingProxyType
from typing import Any, Final

from app.services.history.exceptions import InvalidContent, InvalidPath, PathNotFound
from app.services.history.line_diff import canonical_content
from app.services.history.types import FileContent

SERIALIZATION_VERSION = 1


class _Tombstone:
    """Edit value that removes a path during ``Snapshot.merge``."""

    _instance: "_Tombstone | None" = None

    def __new__(cls) -> "_Tombstone":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "TOMBSTONE"


TOMBSTONE: Final = _Tombstone()

Edit = FileContent | _Tombstone


def normalize_path(path: str) -> str:
    """Return the canonical form of a repository-relative path.

    Raises:
        InvalidPath: If the path is empty, contains ``..`` or NUL characters.
    """
    if not isinstance(path, str):
        raise InvalidPath(repr(path), "path must be a string")
    if "\x00" in path:
        raise InvalidPath(path, "path contains a NUL character")

    segments: list[str] = []
    for segment in path.replace("\\", "/").split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            raise InvalidPath(path, "parent directory segments are not allowed")
        segments.append(segment)

    if not segments:
        raise InvalidPath(path, "path is empty")
    return "/".join(segments)


def content_size(content: FileContent) -> int:
    """Size of a file's content in bytes (text is measured as UTF-8)."""
    if isinstance(content, bytes):
        return len(content)
    return len(content.encode("utf-8", errors="surrogatepass"))


def _check_content(path: str, content: object, max_file_bytes: int | None) -> None:
    if not isinstance(content, str | bytes):
        raise InvalidContent(path, f"expected text or bytes, got {type(content).__name__}")
    if max_file_bytes is not None:
        size = content_size(content)
        if size > max_file_bytes:
            raise InvalidContent(path, f"{size} bytes exceeds the {max_file_bytes} byte limit")


def _check_tree(files: Mapping[str, FileContent]) -> None:
    """Reject trees where a file path is also used as a directory."""
    for path in files:
        parts = path.split("/")
        for depth in range(1, len(parts)):
            parent = "/".join(parts[:depth])
            if parent in files:
                raise InvalidPath(path, f"{parent!r} is a file, not a directory")


def _encode_content(content: FileContent) -> Any:
    if isinstance(content, bytes):
        return {"encoding": "base64", "data": base64.b64encode(content).decode("ascii")}
    return content


def _decode_content(path: str, value: Any) -> FileContent:
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and value.get("encoding") == "base64":
        return base64.b64decode(value.get("data", ""), validate=True)
    raise InvalidContent(path, "unrecognized serialized content")


class Snapshot:
    """Immutable mapping of normalized path to file content."""

    __slots__ = ("_files",)

    _files: Mapping[str, FileContent]

    def __init__(
        self,
        files: Mapping[str, FileContent] | None = None,
        *,
        max_file_bytes: int | None = None,
    ):
        normalized: dict[str, FileContent] = {}
        for raw_path, content in (files or {}).items():
            path = normalize_path(raw_path)
            if path in normalized:
                raise InvalidPath(raw_path, f"duplicates {path!r} after normalization")
            _check_content(path, content, max_file_bytes)
            normalized[path] = content
        _check_tree(normalized)
        self._files = MappingProxyType(dict(sorted(normalized.items())))

    @classmethod
    def _from_trusted(cls, files: dict[str, FileContent]) -> "Snapshot":
        # Paths are already normalized and checked
        snapshot = cls.__new__(cls)
        snapshot._files = MappingProxyType(dict(sorted(files.items())))
        return snapshot

    def merge(
        self,
        edits: Mapping[str, Edit],
        *,
        max_file_bytes: int | None = None,
    ) -> "Snapshot":
        """Apply edits over this snapshot and return the result.

        A ``TOMBSTONE`` value removes the path (removing an absent path is a
        no-op). Every edit is validated before the new tree is built; the
        receiver is never modified.
        """
        if not edits:
            return self

        files = dict(self._files)
        touched: set[str] = set()
        for raw_path, value in edits.items():
            path = normalize_path(raw_path)
            if path in touched:
                raise InvalidPath(raw_path, f"{path!r} is edited more than once")
            touched.add(path)

            if value is TOMBSTONE:
                files.pop(path, None)
            else:
                _check_content(path, value, max_file_bytes)
                files[path] = value  # type: ignore[assignment]

        _check_tree(files)
        return Snapshot._from_trusted(files)

    def get(self, path: str) -> FileContent:
        """Return the content stored at ``path``.

        Raises:
            PathNotFound: If the path is not in the snapshot.
        """
        key = normalize_path(path)
        try:
            return self._files[key]
        except KeyError:
            raise PathNotFound(key) from None

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(self._files)

    def items(self) -> ItemsView[str, FileContent]:
        return self._files.items()

    def to_dict(self) -> dict[str, FileContent]:
        return dict(self._files)

    def to_json(self) -> str:
        """Serialize to the JSON document stored with each commit."""
        document = {
            "version": SERIALIZATION_VERSION,
            "files": {path: _encode_content(c) for path, c in self._files.items()},
        }
        return json.dumps(document, ensure_ascii=False, sort_keys=True)

    @classmethod
    def from_json(cls, data: str | bytes) -> "Snapshot":
        """Rebuild a snapshot from ``to_json()`` output.

        A flat ``{path: content}`` object (the legacy storage format) is
        accepted as well.
        """
        document = json.loads(data)
        if not isinstance(document, dict):
            raise InvalidContent("<snapshot>", "snapshot document must be an object")

        if "version" in document and isinstance(document.get("files"), dict):
            raw_files = document["files"]
        else:
            raw_files = document

        files = {path: _decode_content(path, value) for path, value in raw_files.items()}
        return cls(files)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            return normalize_path(path) in self._files
        except InvalidPath:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def _canonical(self) -> dict[str, FileContent]:
        # Text given as str or as UTF-8 bytes is the same file
        return {path: canonical_content(c) for path, c in self._files.items()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return self._canonical() == other._canonical()

    def __hash__(self) -> int:
        return hash(frozenset(self._canonical().items()))

    def __repr__(self) -> str:
        return f"Snapshot({len(self._files)} files)"


EMPTY_SNAPSHOT: Final = Snapshot()
