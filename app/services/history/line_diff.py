"""Line-level content differencer.

Computes a minimal edit script (fewest inserted + deleted lines) between two
file contents using Myers' O(ND) algorithm in its linear-space form: find the
midpoint of the optimal edit path, then recurse on both halves. Common
prefixes and suffixes are stripped before each bisection.

Output conventions:
- lines keep their terminators, so joining EQUAL+INSERT runs gives the new
  text back exactly and EQUAL+DELETE runs give the old text
- inside a change region all DELETE lines come before INSERT lines
- adjacent ops of the same kind are merged into one run
- binary content yields a single REPLACE op instead of a line diff
"""

from collections.abc import Sequence

from app.services.history.types import EditScript, FileContent, LineOp, LineOpKind

_PREFIX = {
    LineOpKind.EQUAL: "  ",
    LineOpKind.INSERT: "+ ",
    LineOpKind.DELETE: "- ",
}


def is_binary(content: FileContent) -> bool:
    """True for content containing NUL, or bytes that are not valid UTF-8."""
    if isinstance(content, bytes):
        if b"\x00" in content:
            return True
        try:
            content.decode("utf-8")
        except UnicodeDecodeError:
            return True
        return False
    return "\x00" in content


def canonical_content(content: FileContent) -> FileContent:
    """Comparison form of content: ``str`` for text, ``bytes`` for binary.

    ``"abc"`` and ``b"abc"`` are the same file; so are ``"a\\x00"`` and
    ``b"a\\x00"``.
    """
    if is_binary(content):
        if isinstance(content, str):
            return content.encode("utf-8", errors="surrogatepass")
        return content
    return content.decode("utf-8") if isinstance(content, bytes) else content


def split_lines(text: str) -> list[str]:
    return text.splitlines(keepends=True)


def _as_text(content: FileContent) -> str:
    return content.decode("utf-8") if isinstance(content, bytes) else content


def _split_point(
    a: Sequence[str],
    a_lo: int,
    a_hi: int,
    b: Sequence[str],
    b_lo: int,
    b_hi: int,
) -> tuple[int, int] | None:
    """Find a point on an optimal edit path roughly halfway through it.

    Runs the forward and reverse Myers searches simultaneously until they
    overlap. Diagonals whose paths leave the edit grid are dropped from the
    search. Returns absolute ``(x, y)`` or None when no overlap exists.
    """
    n = a_hi - a_lo
    m = b_hi - b_lo
    delta = n - m
    front = delta % 2 != 0
    max_d = (n + m + 1) // 2
    offset = max_d + 1
    size = 2 * max_d + 3
    forward = [-1] * size
    backward = [-1] * size
    forward[offset + 1] = 0
    backward[offset + 1] = 0
    k1_start = k1_end = k2_start = k2_end = 0

    for d in range(max_d + 1):
        for k1 in range(-d + k1_start, d + 1 - k1_end, 2):
            i = offset + k1
            if k1 == -d or (k1 != d and forward[i - 1] < forward[i + 1]):
                x1 = forward[i + 1]
            else:
                x1 = forward[i - 1] + 1
            y1 = x1 - k1
            while x1 < n and y1 < m and a[a_lo + x1] == b[b_lo + y1]:
                x1 += 1
                y1 += 1
            forward[i] = x1
            if x1 > n:
                k1_end += 2
            elif y1 > m:
                k1_start += 2
            elif front:
                j = offset + delta - k1
                if 0 <= j < size and backward[j] != -1 and x1 >= n - backward[j]:
                    return a_lo + x1, b_lo + y1

        # Reverse search walks both sequences from their ends
        for k2 in range(-d + k2_start, d + 1 - k2_end, 2):
            i = offset + k2
            if k2 == -d or (k2 != d and backward[i - 1] < backward[i + 1]):
                x2 = backward[i + 1]
            else:
                x2 = backward[i - 1] + 1
            y2 = x2 - k2
            while x2 < n and y2 < m and a[a_hi - 1 - x2] == b[b_hi - 1 - y2]:
                x2 += 1
                y2 += 1
            backward[i] = x2
            if x2 > n:
                k2_end += 2
            elif y2 > m:
                k2_start += 2
            elif not front:
                j = offset + delta - k2
                if 0 <= j < size and forward[j] != -1:
                    x1 = forward[j]
                    y1 = x1 - (delta - k2)
                    if x1 >= n - x2:
                        return a_lo + x1, b_lo + y1

    return None


def _diff_range(
    a: Sequence[str],
    a_lo: int,
    a_hi: int,
    b: Sequence[str],
    b_lo: int,
    b_hi: int,
    out: list[tuple[LineOpKind, str]],
) -> None:
    while a_lo < a_hi and b_lo < b_hi and a[a_lo] == b[b_lo]:
        out.append((LineOpKind.EQUAL, a[a_lo]))
        a_lo += 1
        b_lo += 1

    a_end, b_end = a_hi, b_hi
    while a_end > a_lo and b_end > b_lo and a[a_end - 1] == b[b_end - 1]:
        a_end -= 1
        b_end -= 1

    if a_lo == a_end:
        out.extend((LineOpKind.INSERT, b[j]) for j in range(b_lo, b_end))
    elif b_lo == b_end:
        out.extend((LineOpKind.DELETE, a[i]) for i in range(a_lo, a_end))
    else:
        split = _split_point(a, a_lo, a_end, b, b_lo, b_end)
        if split is None:
            out.extend((LineOpKind.DELETE, a[i]) for i in range(a_lo, a_end))
            out.extend((LineOpKind.INSERT, b[j]) for j in range(b_lo, b_end))
        else:
            x, y = split
            _diff_range(a, a_lo, x, b, b_lo, y, out)
            _diff_range(a, x, a_end, b, y, b_end, out)

    out.extend((LineOpKind.EQUAL, a[i]) for i in range(a_end, a_hi))


def _to_script(ops: list[tuple[LineOpKind, str]]) -> EditScript:
    """Group per-line ops into runs, deletes first within each change region."""
    script: list[LineOp] = []
    equal: list[str] = []
    deleted: list[str] = []
    inserted: list[str] = []

    def flush_changes() -> None:
        if deleted:
            script.append(LineOp(LineOpKind.DELETE, tuple(deleted)))
            deleted.clear()
        if inserted:
            script.append(LineOp(LineOpKind.INSERT, tuple(inserted)))
            inserted.clear()

    for kind, line in ops:
        if kind is LineOpKind.EQUAL:
            flush_changes()
            equal.append(line)
            continue
        if equal:
            script.append(LineOp(LineOpKind.EQUAL, tuple(equal)))
            equal.clear()
        (deleted if kind is LineOpKind.DELETE else inserted).append(line)

    flush_changes()
    if equal:
        script.append(LineOp(LineOpKind.EQUAL, tuple(equal)))
    return tuple(script)


def diff_lines(old: FileContent, new: FileContent) -> EditScript:
    """Compute the line-level edit script turning ``old`` into ``new``.

    Identical inputs give a single EQUAL run (an empty script for empty
    content). Binary inputs give ``(LineOp(REPLACE, old=old, new=new),)``
    when they differ.
    """
    if is_binary(old) or is_binary(new):
        if canonical_content(old) == canonical_content(new):
            return ()
        return (LineOp(LineOpKind.REPLACE, old=old, new=new),)

    a = split_lines(_as_text(old))
    b = split_lines(_as_text(new))
    ops: list[tuple[LineOpKind, str]] = []
    _diff_range(a, 0, len(a), b, 0, len(b), ops)
    return _to_script(ops)


def apply_script(script: EditScript, *, side: str = "new") -> str:
    """Rebuild one side of a text diff from its edit script.

    ``side="new"`` keeps EQUAL and INSERT runs, ``side="old"`` keeps EQUAL
    and DELETE runs.
    """
    keep = LineOpKind.INSERT if side == "new" else LineOpKind.DELETE
    parts: list[str] = []
    for op in script:
        if op.kind is LineOpKind.REPLACE:
            raise ValueError("binary edit scripts cannot be applied as text")
        if op.kind in (LineOpKind.EQUAL, keep):
            parts.extend(op.lines)
    return "".join(parts)


def script_stats(script: EditScript) -> tuple[int, int]:
    """Return ``(additions, deletions)`` line counts for a script."""
    additions = sum(len(op.lines) for op in script if op.kind is LineOpKind.INSERT)
    deletions = sum(len(op.lines) for op in script if op.kind is LineOpKind.DELETE)
    return additions, deletions


def render_edit_script(script: EditScript) -> str:
    """Render a script as ``+ ``/``- ``/``  `` prefixed lines for display."""
    rendered: list[str] = []
    for op in script:
        if op.kind is LineOpKind.REPLACE:
            rendered.append("Binary files differ")
            continue
        prefix = _PREFIX[op.kind]
        rendered.extend(prefix + line.rstrip("\r\n") for line in op.lines)
    return "\n".join(rendered)
