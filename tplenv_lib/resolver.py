import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import MissingValueError
from .prompts import PromptController
from .scanner import Placeholder, PlaceholderKind
from .values import ValuesStore

logger = logging.getLogger(__name__)

SOURCE_ENVIRONMENT = "environment"
SOURCE_VALUES_FILE = "values file"
SOURCE_PROMPT = "prompt"
SOURCE_UNSET = "unset, empty"

Request = Tuple[PlaceholderKind, str]


@dataclass(frozen=True)
class RenderOptions:
    create_values_file: bool = False
    force: bool = False
    value_file_only: bool = False
    indent: bool = False
    context: bool = False
    pattern_mode: bool = False

    @property
    def can_prompt(self) -> bool:
        return self.create_values_file or self.force


class Resolver:
    """
    Decides the replacement value of every distinct placeholder in a run.

    One Resolver serves all files of a run, so a placeholder shared between
    files is resolved (and prompted for) once. Precedence for {{NAME}} style
    references:

    - normal mode: OS environment, then (only with --create-values-file) the
      stored environment.NAME, then a prompt. Without --create-values-file an
      unset variable becomes the empty string.
    - --value-file-only: stored environment.NAME, then (only with
      --create-values-file) the OS environment, then a prompt. Without
      --create-values-file a missing key is an error.

    With --force, values-file backed references are always prompted for, with
    the current value offered as the default.

    Each resolution is logged at INFO once per distinct request (kind and
    name), not once per occurrence: repeated placeholders reuse the first
    result.
    """

    def __init__(
        self,
        store: ValuesStore,
        prompter: PromptController,
        options: RenderOptions,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.store = store
        self.prompter = prompter
        self.options = options
        self.environ = os.environ if environ is None else environ
        self.values: Dict[Request, str] = {}
        self.sources: Dict[Request, str] = {}
        self.missing: List[Placeholder] = []
        self._missing_requests: set = set()

    def resolve(self, placeholders: Iterable[Placeholder]) -> Dict[Request, str]:
        """Resolve placeholders in order, skipping requests already handled."""
        for ph in placeholders:
            req = ph.request
            if req in self.values or req in self._missing_requests:
                continue
            if ph.is_env:
                value, source = self._resolve_env(ph)
            else:
                value, source = self._resolve_values(ph)
            if value is None:
                self.missing.append(ph)
                self._missing_requests.add(req)
                continue
            self.values[req] = value
            self.sources[req] = source
            logger.info("set %s = %s (%s)", ph.display, value, source)
        return self.values

    def check_complete(self) -> None:
        if self.missing:
            raise MissingValueError(self.missing, str(self.store.path))

    def _prompt(self, ph: Placeholder, default: Optional[str]) -> str:
        value = self.prompter.ask(ph.values_path, default, ph)
        self.store.set(ph.values_path, value)
        return value

    def _resolve_env(self, ph: Placeholder) -> Tuple[Optional[str], str]:
        opts = self.options
        path = ph.values_path
        os_value = self.environ.get(ph.name)

        if not opts.value_file_only:
            if os_value is not None:
                if opts.create_values_file and not self.store.contains(path):
                    self.store.set(path, os_value)
                return os_value, SOURCE_ENVIRONMENT
            if not opts.can_prompt:
                logger.warning(
                    "environment variable %s is not set, using an empty string (%s:%d)",
                    ph.name,
                    ph.source,
                    ph.line,
                )
                return "", SOURCE_UNSET
            stored = self.store.get(path)
            if stored is not None and not opts.force:
                return stored, SOURCE_VALUES_FILE
            return self._prompt(ph, stored), SOURCE_PROMPT

        stored = self.store.get(path)
        if stored is not None and not opts.force:
            return stored, SOURCE_VALUES_FILE
        if not opts.can_prompt:
            return None, ""
        if stored is None and os_value is not None and not opts.force:
            self.store.set(path, os_value)
            return os_value, SOURCE_ENVIRONMENT
        default = stored if stored is not None else os_value
        return self._prompt(ph, default), SOURCE_PROMPT

    def _resolve_values(self, ph: Placeholder) -> Tuple[Optional[str], str]:
        stored = self.store.get(ph.name)
        if stored is not None and not self.options.force:
            return stored, SOURCE_VALUES_FILE
        if not self.options.can_prompt:
            return None, ""
        return self._prompt(ph, stored), SOURCE_PROMPT
