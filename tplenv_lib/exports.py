from typing import Iterable, List

from .prompts import PromptRecord
from .scanner import ENVIRONMENT_KEY
from .values import split_path


def export_name(path: str) -> str:
    """
    Shell variable name for a values path.

    image.tag -> IMAGE_TAG, environment.APP_NAME -> APP_NAME
    """
    parts = split_path(path)
    if parts[0] == ENVIRONMENT_KEY and len(parts) > 1:
        parts = parts[1:]
    return "_".join(p.upper() for p in parts)


def shell_quote(value: str) -> str:
    return "'" + value.replace("'", "'\\''") + "'"


def export_lines(records: Iterable[PromptRecord]) -> List[str]:
    return [f"export {export_name(r.path)}={shell_quote(r.value)}" for r in records]


def format_exports(records: Iterable[PromptRecord]) -> str:
    lines = export_lines(records)
    return "".join(line + "\n" for line in lines)
