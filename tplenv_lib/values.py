import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import NotFoundError, StructuralConflictError, TplenvError

logger = logging.getLogger(__name__)

_MISSING = object()


class _ValuesDumper(yaml.SafeDumper):
    pass


def _str_presenter(dumper: yaml.SafeDumper, data: str):  # type: ignore[name-defined]
    # Literal block style keeps multiline values readable in the values file
    style = "|" if "\n" in data else None
    return dumper.represent_scalar("tag:yaml.org,2002:str", data, style=style)


_ValuesDumper.add_representer(str, _str_presenter)  # type: ignore[arg-type]


def dump_values(data: Any) -> str:
    return yaml.dump(
        data,
        Dumper=_ValuesDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def to_text(value: Any) -> str:
    """
    Render a values-document node as the text substituted into a template.

    Scalars become their plain string form (null is empty, booleans are
    lowercase). Mappings and sequences become their YAML text.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return dump_values(value).rstrip("\n")
    return str(value)


def split_path(path: str) -> List[str]:
    parts = path.split(".")
    if not path or any(not p for p in parts):
        raise ValueError(f"Invalid dotted path: {path!r}")
    return parts


def _load_yaml(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class ValuesStore:
    """
    Nested key-value document backing .Values.* and environment.* lookups.

    Addressed by dotted paths ("image.tag"). Every intermediate segment of a
    path must be a mapping; hitting a scalar on the way is a structural
    conflict. New keys are appended after existing ones, so persisting keeps
    the original key order of untouched sections.
    """

    def __init__(self, path: Union[str, Path], data: Optional[Dict[str, Any]] = None) -> None:
        self.path = Path(path)
        self.data: Dict[str, Any] = data if data is not None else {}
        self.dirty = False

    @classmethod
    def load(cls, path: Union[str, Path], create: bool = False) -> "ValuesStore":
        p = Path(path)
        if not p.exists():
            if not create:
                raise NotFoundError(f"values file not found: {p}")
            logger.info("Values file %s does not exist yet, starting empty", p)
            return cls(p)
        try:
            data = _load_yaml(p)
        except yaml.YAMLError as e:
            raise TplenvError(f"failed to parse values file {p}: {e}") from e
        except OSError as e:
            raise TplenvError(f"failed to read values file {p}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise TplenvError(f"values file {p} must contain a mapping at the top level")
        return cls(p, data)

    def _lookup(self, path: str) -> Any:
        parts = split_path(path)
        node: Any = self.data
        for idx, part in enumerate(parts):
            if node is None:
                return _MISSING
            if not isinstance(node, dict):
                raise StructuralConflictError(path, f"{'.'.join(parts[:idx])} is not a mapping")
            if part not in node:
                return _MISSING
            node = node[part]
        return node

    def contains(self, path: str) -> bool:
        return self._lookup(path) is not _MISSING

    def get(self, path: str) -> Optional[str]:
        node = self._lookup(path)
        if node is _MISSING:
            return None
        return to_text(node)

    def set(self, path: str, value: str) -> None:
        """
        Store value at path, creating intermediate mappings as needed.

        An empty (null) intermediate key is turned into a mapping; any other
        non-mapping on the way raises StructuralConflictError. Setting a value
        equal to the current one leaves the document (and its types) alone.
        """
        parts = split_path(path)
        node = self.data
        for idx, part in enumerate(parts[:-1]):
            child = node.get(part)
            if child is None:
                child = {}
                node[part] = child
            elif not isinstance(child, dict):
                raise StructuralConflictError(path, f"{'.'.join(parts[:idx + 1])} is not a mapping")
            node = child

        leaf = parts[-1]
        if leaf in node:
            current = node[leaf]
            if to_text(current) == value:
                return
            if isinstance(current, (dict, list)):
                raise StructuralConflictError(path, "refusing to replace a nested structure with a scalar")
        node[leaf] = value
        self.dirty = True

    def persist(self) -> bool:
        """
        Write the document back if it changed. Returns True when written.

        The file is written to a temporary sibling and atomically moved into
        place, so a failure never leaves a half-written values file.
        """
        if not self.dirty:
            return False
        text = dump_values(self.data)
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=str(directory), prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                    f.flush()
                    os.fsync(f.fileno())
                if self.path.exists():
                    shutil.copymode(self.path, temp_path)
                os.replace(temp_path, self.path)
            except Exception:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
        except OSError as e:
            raise TplenvError(f"failed to write values file {self.path}: {e}") from e
        self.dirty = False
        logger.info("Updated values file %s", self.path)
        return True
