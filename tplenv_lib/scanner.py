import bisect
import enum
import re
from dataclasses import dataclass
from typing import List, Tuple

ENVIRONMENT_KEY = "environment"

_NAME = r"[A-Za-z_][A-Za-z0-9_]*"

# Alternatives are tried left to right at each position, which gives the
# priority order: .Values paths, {{NAME}}, any other {{...}} span (kept
# literally), then ${NAME} and $NAME outside of double braces.
PLACEHOLDER_PATTERN = re.compile(
    r"\{\{[ \t]*\.[ \t]*Values(?P<path>(?:[ \t]*\.[ \t]*[A-Za-z0-9_]+)+)[ \t]*\}\}"
    r"|\{\{[ \t]*(?P<braced>" + _NAME + r")[ \t]*\}\}"
    r"|(?P<other>\{\{.*?\}\})"
    r"|\$\{(?P<dollar_braced>" + _NAME + r")\}"
    r"|\$(?P<dollar>" + _NAME + r")"
)


class PlaceholderKind(enum.Enum):
    ENV = "env"
    VALUES = "values"


@dataclass(frozen=True)
class Placeholder:
    """One placeholder occurrence in a template."""

    kind: PlaceholderKind
    name: str  # variable name for ENV, dotted path for VALUES
    raw: str
    start: int
    end: int
    line: int  # 1-based
    column: int  # 1-based
    source: str = "<string>"
    line_text: str = ""

    @property
    def is_env(self) -> bool:
        return self.kind is PlaceholderKind.ENV

    @property
    def request(self) -> Tuple[PlaceholderKind, str]:
        # All occurrences sharing this key resolve to one value per run
        return (self.kind, self.name)

    @property
    def values_path(self) -> str:
        if self.is_env:
            return env_values_path(self.name)
        return self.name

    @property
    def display(self) -> str:
        if self.is_env:
            return env_values_path(self.name)
        return f".Values.{self.name}"


def env_values_path(name: str) -> str:
    return f"{ENVIRONMENT_KEY}.{name}"


def scan(text: str, source: str = "<string>") -> List[Placeholder]:
    """
    Find every placeholder in text, in left-to-right, top-to-bottom order.

    Recognized forms:
    - {{ .Values.a.b.c }}  -> VALUES placeholder for path a.b.c
    - {{NAME}}             -> ENV placeholder
    - ${NAME} and $NAME    -> ENV placeholder
    Any other {{...}} span is skipped and stays in the output untouched.
    """
    line_starts = [0] + [m.end() for m in re.finditer("\n", text)]
    found: List[Placeholder] = []
    for m in PLACEHOLDER_PATTERN.finditer(text):
        if m.group("other") is not None:
            continue
        if m.group("path") is not None:
            kind = PlaceholderKind.VALUES
            name = re.sub(r"\s+", "", m.group("path")).lstrip(".")
        else:
            kind = PlaceholderKind.ENV
            name = m.group("braced") or m.group("dollar_braced") or m.group("dollar")
        idx = bisect.bisect_right(line_starts, m.start()) - 1
        line_start = line_starts[idx]
        line_end = text.find("\n", line_start)
        if line_end == -1:
            line_end = len(text)
        found.append(
            Placeholder(
                kind=kind,
                name=name,
                raw=m.group(0),
                start=m.start(),
                end=m.end(),
                line=idx + 1,
                column=m.start() - line_start + 1,
                source=source,
                line_text=text[line_start:line_end].rstrip("\r"),
            )
        )
    return found
