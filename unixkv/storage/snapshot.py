"""
Snapshot Persistence Module

This module serializes the KVStore to and from a textual key-file:

    # comments and blank lines are ignored
    [database]
    name=Alice
    motd=line one\\nline two

Format rules:
    - Entries live in one designated section; other sections are
      checked for syntax and skipped.
    - Keys and values are escaped so any text survives a round trip:
      \\\\ \\n \\r \\t, \\s for a leading or trailing space, \\xHH for
      other control characters. Keys also escape = [ ] and a leading #.
    - Whitespace around the first unescaped '=' is insignificant.
    - A later duplicate key replaces an earlier one.

Snapshots are full rewrites: the new content is written to a temporary
file next to the target and moved into place with os.replace().
"""

import errno
import logging
import os
import string
import tempfile
from typing import Dict, Iterable, List, Optional, Tuple

from ..config.settings import settings
from .store import KVStore

logger = logging.getLogger(__name__)

_SIMPLE_ESCAPES = {
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

_SIMPLE_UNESCAPES = {
    "\\": "\\",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "s": " ",
    "=": "=",
    "[": "[",
    "]": "]",
    "#": "#",
}

_KEY_RESERVED = "=[]"


class SnapshotError(Exception):
    """Base class for snapshot failures."""


class SnapshotIOError(SnapshotError):
    """
    The snapshot file could not be read or written.

    Attributes:
        errno: OS error number when one is known, else None
        path: The snapshot path involved
    """

    def __init__(self, message: str, errno: Optional[int] = None, path: Optional[str] = None):
        super().__init__(message)
        self.errno = errno
        self.path = path


class SnapshotNotFoundError(SnapshotIOError):
    """No snapshot exists yet at the given path."""


class SnapshotParseError(SnapshotError):
    """
    The snapshot content is malformed.

    Attributes:
        lineno: 1-based line number of the offending line (0 if unknown)
    """

    def __init__(self, message: str, lineno: int = 0):
        if lineno:
            message = f"line {lineno}: {message}"
        super().__init__(message)
        self.lineno = lineno


def _is_control(ch: str) -> bool:
    return ord(ch) < 0x20 or ord(ch) == 0x7F


def escape(text: str, is_key: bool = False) -> str:
    """
    Escape a key or value for the key-file format.

    Args:
        text: Raw key or value
        is_key: Also escape characters reserved in key position

    Returns:
        Single-line escaped text
    """
    out = []
    last = len(text) - 1
    for i, ch in enumerate(text):
        if ch in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[ch])
        elif ch == " " and (i == 0 or i == last):
            out.append("\\s")
        elif _is_control(ch):
            out.append(f"\\x{ord(ch):02x}")
        elif is_key and (ch in _KEY_RESERVED or (i == 0 and ch == "#")):
            out.append("\\" + ch)
        else:
            out.append(ch)
    return "".join(out)


def unescape(text: str, lineno: int = 0) -> str:
    """
    Reverse escape().

    Raises:
        SnapshotParseError: On an unknown or truncated escape sequence
    """
    out = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue

        if i + 1 >= n:
            raise SnapshotParseError("dangling backslash", lineno)

        code = text[i + 1]
        if code in _SIMPLE_UNESCAPES:
            out.append(_SIMPLE_UNESCAPES[code])
            i += 2
        elif code == "x":
            digits = text[i + 2:i + 4]
            if len(digits) != 2 or not all(c in string.hexdigits for c in digits):
                raise SnapshotParseError(f"invalid escape '\\x{digits}'", lineno)
            out.append(chr(int(digits, 16)))
            i += 4
        else:
            raise SnapshotParseError(f"invalid escape '\\{code}'", lineno)
    return "".join(out)


def _find_separator(line: str) -> int:
    """Return the index of the first unescaped '=' or -1."""
    i = 0
    while i < len(line):
        if line[i] == "\\":
            i += 2
            continue
        if line[i] == "=":
            return i
        i += 1
    return -1


class SnapshotCodec:
    """
    Reads and writes KVStore snapshots in the key-file format.

    Usage:
        codec = SnapshotCodec()
        codec.write_to_path(store, "/var/lib/unixkv/db.ini")
        pairs = codec.read_from_path("/var/lib/unixkv/db.ini")

    Attributes:
        section: Name of the section holding the store entries
    """

    def __init__(self, section: str = None):
        self.section = section if section is not None else settings.SNAPSHOT_SECTION

    def encode(self, pairs: Iterable[Tuple[str, str]]) -> bytes:
        """
        Serialize (key, value) pairs into snapshot bytes.

        Raises:
            SnapshotError: If the text cannot be encoded as UTF-8
        """
        lines = [f"[{self.section}]"]
        for key, value in pairs:
            lines.append(f"{escape(key, is_key=True)}={escape(value)}")
        lines.append("")

        try:
            return "\n".join(lines).encode("utf-8")
        except UnicodeEncodeError as exc:
            raise SnapshotError(f"cannot encode snapshot: {exc}") from exc

    def decode(self, data: bytes) -> List[Tuple[str, str]]:
        """
        Parse snapshot bytes into (key, value) pairs.

        A snapshot without the designated section decodes to no pairs.

        Raises:
            SnapshotParseError: If the content is malformed
        """
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SnapshotParseError(f"snapshot is not valid UTF-8: {exc}") from exc

        entries: Dict[str, str] = {}
        current: Optional[str] = None

        for lineno, line in enumerate(text.split("\n"), start=1):
            line = line.rstrip("\r")
            stripped = line.strip(" \t")

            if not stripped or stripped.startswith("#"):
                continue

            if stripped.startswith("["):
                if not stripped.endswith("]") or len(stripped) < 3:
                    raise SnapshotParseError(f"malformed section header {stripped!r}", lineno)
                current = stripped[1:-1]
                continue

            if current is None:
                raise SnapshotParseError("entry outside of any section", lineno)

            sep = _find_separator(stripped)
            if sep < 0:
                raise SnapshotParseError("expected 'key=value'", lineno)

            key = unescape(stripped[:sep].strip(" \t"), lineno)
            value = unescape(stripped[sep + 1:].strip(" \t"), lineno)
            if current == self.section:
                entries[key] = value

        return list(entries.items())

    def write_to_path(self, store: KVStore, path: str) -> int:
        """
        Write a full snapshot of the store to path.

        The store is encoded before any file is touched, then the bytes go
        to a temporary file in the same directory which replaces the
        target once fsynced. A failure leaves the previous snapshot intact.

        Returns:
            Number of keys written

        Raises:
            SnapshotIOError: If the file cannot be written
        """
        pairs = store.snapshot_view()
        data = self.encode(pairs)

        directory = os.path.dirname(os.path.abspath(path))
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=directory,
                prefix=f".{os.path.basename(path)}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise SnapshotIOError(
                f"Failed to write snapshot {path}: {exc.strerror or exc}",
                errno=exc.errno,
                path=path,
            ) from exc

        logger.debug(f"Wrote {len(pairs)} keys to {path}")
        return len(pairs)

    def read_from_path(self, path: str) -> List[Tuple[str, str]]:
        """
        Read and parse the snapshot at path.

        Raises:
            SnapshotNotFoundError: If no file exists at path
            SnapshotIOError: If the file exists but cannot be read
            SnapshotParseError: If the content is malformed
        """
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError as exc:
            raise SnapshotNotFoundError(
                f"Snapshot {path} does not exist",
                errno=errno.ENOENT,
                path=path,
            ) from exc
        except OSError as exc:
            raise SnapshotIOError(
                f"Failed to read snapshot {path}: {exc.strerror or exc}",
                errno=exc.errno,
                path=path,
            ) from exc

        return self.decode(data)

    def load_into(self, store: KVStore, path: str) -> int:
        """
        Replace the store contents with the snapshot at path.

        The store is only touched once the whole file has parsed.

        Returns:
            Number of keys loaded
        """
        pairs = self.read_from_path(path)
        store.clear_and_load(pairs)
        return len(pairs)
