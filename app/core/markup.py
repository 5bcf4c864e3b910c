"""Safe rendering of user-supplied text (commit messages, READMEs).

Everything is HTML-escaped before any markup is produced, so the output
never contains tags that were present in the input. Supported subset:
ATX headings, paragraphs, fenced code blocks, inline code and ``-``/``*``
bullet lists. Anything else renders as plain paragraph text.
"""

import html
import re

_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
_BULLET = re.compile(r"^\s*[-*]\s+(.*)$")
_FENCE = re.compile(r"^\s*```")
_INLINE_CODE = re.compile(r"`([^`]+)`")


def _inline(text: str) -> str:
    escaped = html.escape(text, quote=True)
    return _INLINE_CODE.sub(r"<code>\1</code>", escaped)


def render_safe(text: str) -> str:
    """Render ``text`` to an HTML fragment.

    Diff content must not go through here; it is displayed verbatim.
    """
    out: list[str] = []
    paragraph: list[str] = []
    items: list[str] = []
    code: list[str] | None = None

    def flush() -> None:
        if paragraph:
            out.append("<p>" + "<br>\n".join(_inline(line) for line in paragraph) + "</p>")
            paragraph.clear()
        if items:
            out.append("<ul>" + "".join(f"<li>{_inline(item)}</li>" for item in items) + "</ul>")
            items.clear()

    for line in text.splitlines():
        if code is not None:
            if _FENCE.match(line):
                out.append("<pre><code>" + html.escape("\n".join(code)) + "</code></pre>")
                code = None
            else:
                code.append(line)
            continue

        if _FENCE.match(line):
            flush()
            code = []
            continue

        if not line.strip():
            flush()
            continue

        heading = _HEADING.match(line)
        if heading:
            flush()
            level = len(heading.group(1))
            out.append(f"<h{level}>{_inline(heading.group(2))}</h{level}>")
            continue

        bullet = _BULLET.match(line)
        if bullet:
            if paragraph:
                flush()
            items.append(bullet.group(1))
            continue

        if items:
            flush()
        paragraph.append(line.strip())

    # Unterminated fence runs to the end of the text
    if code is not None:
        out.append("<pre><code>" + html.escape("\n".join(code)) + "</code></pre>")
    flush()
    return "\n".join(out)
