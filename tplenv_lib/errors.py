from typing import List, Sequence


class TplenvError(Exception):
    """Base class for every failure that aborts a render run."""


class NotFoundError(TplenvError):
    pass


class StructuralConflictError(TplenvError):
    def __init__(self, path: str, detail: str = "") -> None:
        self.path = path
        msg = f"values path {path!r} collides with an existing value"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class MissingValueError(TplenvError):
    """
    Raised when placeholders cannot be resolved and prompting is not allowed.

    Carries every unresolved placeholder of the batch so the operator can fix
    all of them in one go.
    """

    def __init__(self, missing: Sequence, values_file: str = "") -> None:
        self.missing: List = list(missing)
        target = f" (values file {values_file})" if values_file else ""
        lines = ["not all placeholders could be resolved"]
        for ph in self.missing:
            lines.append(f"- {ph.display}{target} at {ph.source}:{ph.line}")
        super().__init__("\n".join(lines))


class MixedFileTypesError(TplenvError):
    pass


class IncompleteInputError(TplenvError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"input ended while waiting for a value for {path}")
