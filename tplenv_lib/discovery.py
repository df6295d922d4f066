import os
import re
from typing import List, Pattern, Tuple

from .errors import NotFoundError, TplenvError

NUM_TOKEN = "<NUM>"

_TOKEN_PATTERN = re.compile(r"(<NUM>|\*|\?)")


def compile_name_pattern(name_pattern: str) -> Pattern[str]:
    """
    Turn a file name pattern into a regex.

    '*' and '?' work like shell globs; <NUM> matches a run of digits and is
    captured so matches can be ordered numerically.
    """
    parts: List[str] = []
    for token in _TOKEN_PATTERN.split(name_pattern):
        if token == NUM_TOKEN:
            parts.append(r"(\d+)")
        elif token == "*":
            parts.append(r".*")
        elif token == "?":
            parts.append(r".")
        elif token:
            parts.append(re.escape(token))
    return re.compile("".join(parts))


def discover(pattern: str) -> List[str]:
    """
    Return the files matching pattern, ordered by their <NUM> captures, then name.

    Wildcards are only supported in the file name component.
    """
    directory, name_pattern = os.path.split(pattern)
    if any(ch in directory for ch in "*?") or NUM_TOKEN in directory:
        raise TplenvError(f"wildcards are only supported in the file name part of {pattern!r}")
    if not name_pattern:
        raise TplenvError(f"file pattern {pattern!r} has no file name part")
    search_dir = directory or "."
    if not os.path.isdir(search_dir):
        raise NotFoundError(f"directory not found for file pattern {pattern!r}: {search_dir}")

    regex = compile_name_pattern(name_pattern)
    matches: List[Tuple[Tuple[int, ...], str, str]] = []
    for entry in os.listdir(search_dir):
        full_path = os.path.join(directory, entry) if directory else entry
        if not os.path.isfile(full_path):
            continue
        m = regex.fullmatch(entry)
        if m is None:
            continue
        numbers = tuple(int(g) for g in m.groups())
        matches.append((numbers, entry, full_path))

    if not matches:
        raise NotFoundError(f"no files match pattern {pattern!r}")
    matches.sort(key=lambda t: (t[0], t[1]))
    return [full_path for _, _, full_path in matches]
