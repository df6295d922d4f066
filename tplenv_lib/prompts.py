import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, TextIO

from .errors import IncompleteInputError
from .scanner import Placeholder


@dataclass(frozen=True)
class PromptRecord:
    """A value the operator was actually asked for."""

    path: str
    default: Optional[str]
    value: str


class PromptController:
    """
    Asks the operator for values, one line of input per question.

    Questions are keyed by values-file path and asked at most once per run;
    asking again for an answered path returns the earlier answer. Prompts and
    context lines go to the diagnostics stream (stderr by default) so stdout
    stays free for rendered output.
    """

    def __init__(
        self,
        input_stream: Optional[TextIO] = None,
        output_stream: Optional[TextIO] = None,
        context: bool = False,
    ) -> None:
        self._input = input_stream
        self._output = output_stream
        self.context = context
        self.records: List[PromptRecord] = []
        self._answers: Dict[str, str] = {}

    @property
    def input(self) -> TextIO:
        return self._input if self._input is not None else sys.stdin

    @property
    def output(self) -> TextIO:
        return self._output if self._output is not None else sys.stderr

    def answered(self, path: str) -> bool:
        return path in self._answers

    def ask(self, path: str, default: Optional[str] = None, placeholder: Optional[Placeholder] = None) -> str:
        """
        Ask for the value of path, offering default when there is one.

        Empty input accepts the default verbatim, or yields the empty string
        when there is no default. End of input raises IncompleteInputError.
        """
        if path in self._answers:
            return self._answers[path]

        if self.context and placeholder is not None:
            self._show_context(placeholder)

        prompt = f"Enter value for values file key {path}"
        if default is not None:
            prompt += f" [{default}]"
        prompt += ": "
        self.output.write(prompt)
        self.output.flush()

        line = self.input.readline()
        if not line:
            self.output.write("\n")
            self.output.flush()
            raise IncompleteInputError(path)
        entered = line.rstrip("\r\n")
        if entered:
            value = entered
        elif default is not None:
            value = default
        else:
            value = ""

        self._answers[path] = value
        self.records.append(PromptRecord(path=path, default=default, value=value))
        return value

    def _show_context(self, placeholder: Placeholder) -> None:
        text = placeholder.line_text
        # Keep tabs so the marker lines up under the placeholder
        lead = "".join("\t" if ch == "\t" else " " for ch in text[: placeholder.column - 1])
        self.output.write(f"\n{placeholder.source}:{placeholder.line}\n")
        self.output.write(f"{text}\n")
        self.output.write(f"{lead}{'^' * len(placeholder.raw)}\n")
        self.output.flush()
