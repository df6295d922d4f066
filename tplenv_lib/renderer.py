import logging
import re
import textwrap
from collections import defaultdict
from typing import Dict, List, Mapping, Sequence, Tuple

from .scanner import Placeholder, PlaceholderKind

logger = logging.getLogger(__name__)

DEFAULT_INDENT_UNIT = 2

# Splits the text in front of a placeholder into indentation, sequence
# dashes, an optional "key:" and whatever literal text is left.
_LEAD_PATTERN = re.compile(
    r"^(?P<indent>[ ]*)(?P<item>(?:-[ ]+)*)(?P<key>[^\s#-][^#]*?:[ \t]+|)(?P<rest>.*)$"
)

# End-of-line YAML comment in the template text after the last placeholder.
_COMMENT_PATTERN = re.compile(r"[ \t]+#.*$")

Values = Mapping[Tuple[PlaceholderKind, str], str]


def render(text: str, placeholders: Sequence[Placeholder], values: Values, indent: bool = False) -> str:
    """
    Substitute resolved values for placeholders in text.

    Positions come from the scan of the original text, so inserted values are
    never scanned again. With indent=True, a multiline value is turned into a
    YAML literal block scalar under its key (or re-indented to the line's
    indentation when the placeholder is the line's only content).
    """
    if not placeholders:
        return text
    if not indent:
        return _splice(text, 0, placeholders, values)

    by_line: Dict[int, List[Placeholder]] = defaultdict(list)
    for ph in placeholders:
        by_line[ph.line - 1].append(ph)

    lines = _split_lines(text)
    out: List[str] = []
    offset = 0
    for idx, line in enumerate(lines):
        phs = by_line.get(idx)
        if not phs:
            out.append(line)
        elif any("\n" in values[ph.request] for ph in phs):
            out.append(_render_block_line(lines, idx, line, offset, phs, values))
        else:
            out.append(_splice(line, offset, phs, values))
        offset += len(line)
    return "".join(out)


def _split_lines(text: str) -> List[str]:
    parts = text.split("\n")
    lines = [p + "\n" for p in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _splice(text: str, base: int, placeholders: Sequence[Placeholder], values: Values) -> str:
    # base is the offset of text within the scanned template
    pieces: List[str] = []
    pos = 0
    for ph in placeholders:
        pieces.append(text[pos:ph.start - base])
        pieces.append(values[ph.request])
        pos = ph.end - base
    pieces.append(text[pos:])
    return "".join(pieces)


def _indent_width(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def indent_unit(lines: Sequence[str], idx: int) -> int:
    """
    Indentation step in effect at lines[idx].

    Taken from the nearest enclosing (less indented) line above; for top-level
    lines, the smallest step between indentation levels used in the document.
    """
    current = _indent_width(lines[idx])
    if current:
        for j in range(idx - 1, -1, -1):
            if not lines[j].strip():
                continue
            width = _indent_width(lines[j])
            if width < current:
                return current - width
    widths = sorted({_indent_width(line) for line in lines if line.strip()})
    steps = [b - a for a, b in zip(widths, widths[1:])]
    return min(steps) if steps else DEFAULT_INDENT_UNIT


def _render_block_line(
    lines: Sequence[str], idx: int, line: str, base: int, phs: Sequence[Placeholder], values: Values
) -> str:
    ending = "\n" if line.endswith("\n") else ""
    body = line[: len(line) - len(ending)]
    first = phs[0]
    split_at = first.start - base
    before = body[:split_at]
    m = _LEAD_PATTERN.match(before)
    lead_indent, item, key, rest = m.group("indent", "item", "key", "rest")
    content = _splice(body[split_at:], base + split_at, phs, values)

    if not key and not item and not rest:
        # Placeholder is the whole line: insert the value as indented lines
        if ending and content.endswith("\n"):
            content = content[:-1]
        block = textwrap.dedent(content).split("\n")
        return "\n".join(lead_indent + part if part.strip() else "" for part in block) + ending

    if not key and (rest or not item):
        # Free text in front of the value, no key to hang a block on
        logger.info(
            "%s:%d: no key to attach a block scalar to, inserting %s literally",
            first.source,
            first.line,
            first.display,
        )
        return _splice(line, base, phs, values)

    comment = ""
    found = _COMMENT_PATTERN.search(body, phs[-1].end - base)
    if found:
        comment = " " + found.group(0).lstrip(" \t")
        content = _splice(body[split_at:found.start()], base + split_at, phs, values)

    if rest in ('"', "'") and content.endswith(rest):
        content = content[: -len(rest)]
        rest = ""
    content = rest + content

    node_col = len(lead_indent) + (len(item) if key else 0)
    body_indent = len(lead_indent) + len(item) + indent_unit(lines, idx)
    header, block_text, trailing = _block_scalar(content, body_indent, node_col)
    nl = ending or "\n"
    out = (lead_indent + item + key).rstrip() + " " + header + comment + nl + block_text
    if trailing:
        out += nl + nl * (trailing - 1)
    elif ending:
        out += ending
    return out


def _block_scalar(content: str, body_indent: int, node_col: int) -> Tuple[str, str, int]:
    stripped = content.rstrip("\n")
    trailing = len(content) - len(stripped)
    if trailing == 0:
        chomp = "-"
    elif trailing == 1:
        chomp = ""
    else:
        chomp = "+"
    body_lines = textwrap.dedent(stripped).split("\n")
    first = next((part for part in body_lines if part.strip()), "")
    indicator = ""
    if first[:1] in (" ", "\t"):
        # Leading whitespace on the first line needs an explicit indentation indicator
        step = body_indent - node_col
        if 0 < step <= 9:
            indicator = str(step)
    pad = " " * body_indent
    text = "\n".join(pad + part if part.strip() else "" for part in body_lines)
    return "|" + indicator + chomp, text, trailing
