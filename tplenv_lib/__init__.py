"""
tplenv_lib: resolve placeholders in YAML or Markdown templates from environment variables,
a YAML values file, and interactive input.

Placeholders:
- {{NAME}}, ${NAME}, $NAME      -> environment variable NAME (or environment.NAME in the values file)
- {{ .Values.a.b }}             -> key a: {b: ...} in the values file
Any other {{...}} content is left untouched.

Public API:
- scan(text, source) -> list[Placeholder]
- ValuesStore.load(path, create=False) -> ValuesStore, with get/set/persist on dotted paths
- PromptController(input_stream, output_stream, context=False).ask(path, default, placeholder) -> str
- Resolver(store, prompter, options, environ).resolve(placeholders)
- render(text, placeholders, values, indent=False) -> str
- process(sources, values_path, options, prompter=None, environ=None) -> RenderResult
- format_exports(records) -> str
- discover(pattern) -> list[str]

Several files can be processed in one run: they share the values file and the prompt session, so
every distinct placeholder is asked for at most once, and the rendered files are joined with '---'.
"""
from .assembler import RenderResult, TemplateSource, check_file_types, join_documents, load_sources, process
from .discovery import discover
from .errors import (
    IncompleteInputError,
    MissingValueError,
    MixedFileTypesError,
    NotFoundError,
    StructuralConflictError,
    TplenvError,
)
from .exports import export_name, format_exports
from .prompts import PromptController, PromptRecord
from .renderer import render
from .resolver import RenderOptions, Resolver
from .scanner import Placeholder, PlaceholderKind, scan
from .values import ValuesStore

__version__ = "0.4.0"

__all__ = [
    "IncompleteInputError",
    "MissingValueError",
    "MixedFileTypesError",
    "NotFoundError",
    "Placeholder",
    "PlaceholderKind",
    "PromptController",
    "PromptRecord",
    "RenderOptions",
    "RenderResult",
    "Resolver",
    "StructuralConflictError",
    "TemplateSource",
    "TplenvError",
    "ValuesStore",
    "check_file_types",
    "discover",
    "export_name",
    "format_exports",
    "join_documents",
    "load_sources",
    "process",
    "render",
    "scan",
]
