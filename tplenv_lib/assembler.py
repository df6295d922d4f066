import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .errors import MixedFileTypesError, NotFoundError, TplenvError
from .prompts import PromptController, PromptRecord
from .renderer import render
from .resolver import RenderOptions, Resolver
from .scanner import Placeholder, PlaceholderKind, scan
from .values import ValuesStore

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = "---"

# File types that can be joined into one document stream
_FILE_FAMILIES: Dict[str, str] = {
    ".yaml": "yaml",
    ".yml": "yaml",
    ".md": "markdown",
    ".markdown": "markdown",
}


@dataclass(frozen=True)
class TemplateSource:
    path: str
    text: str


@dataclass
class ScannedTemplate:
    source: TemplateSource
    placeholders: List[Placeholder]


@dataclass
class RenderResult:
    documents: List[str]
    output: str
    records: List[PromptRecord] = field(default_factory=list)


def load_sources(paths: Sequence[str]) -> List[TemplateSource]:
    sources: List[TemplateSource] = []
    for path in paths:
        if not os.path.isfile(path):
            raise NotFoundError(f"input file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                sources.append(TemplateSource(path=path, text=f.read()))
        except (OSError, UnicodeDecodeError) as e:
            raise TplenvError(f"failed to read file {path}: {e}") from e
    return sources


def check_file_types(paths: Sequence[str]) -> None:
    """Every file of a pattern run must be of one recognized type."""
    families = set()
    for path in paths:
        suffix = os.path.splitext(path)[1].lower()
        family = _FILE_FAMILIES.get(suffix)
        if family is None:
            raise MixedFileTypesError(
                f"{path}: unsupported file type {suffix or '(none)'!r} for multi-document output; "
                f"expected one of {', '.join(sorted(_FILE_FAMILIES))}"
            )
        families.add(family)
    if len(families) > 1:
        raise MixedFileTypesError(
            "file pattern matched files of different types: " + ", ".join(paths)
        )


def scan_sources(sources: Sequence[TemplateSource]) -> List[ScannedTemplate]:
    return [ScannedTemplate(source=src, placeholders=scan(src.text, src.path)) for src in sources]


def needs_values_file(templates: Sequence[ScannedTemplate], options: RenderOptions) -> bool:
    for tmpl in templates:
        for ph in tmpl.placeholders:
            if ph.kind is PlaceholderKind.VALUES:
                return True
            if options.value_file_only:
                return True
    return False


def open_values_store(path: str, templates: Sequence[ScannedTemplate], options: RenderOptions) -> ValuesStore:
    """
    Load the values file when this batch reads or may write it.

    A missing file is an error only when something reads from it and
    --create-values-file is off.
    """
    if options.create_values_file or needs_values_file(templates, options):
        return ValuesStore.load(path, create=options.create_values_file)
    return ValuesStore(path)


def join_documents(documents: Sequence[str]) -> str:
    out: List[str] = []
    for idx, doc in enumerate(documents):
        if idx:
            if out and not out[-1].endswith("\n"):
                out.append("\n")
            if doc.split("\n", 1)[0].rstrip() != DOCUMENT_SEPARATOR:
                out.append(DOCUMENT_SEPARATOR + "\n")
        out.append(doc)
    return "".join(out)


def render_batch(
    templates: Sequence[ScannedTemplate],
    store: ValuesStore,
    prompter: PromptController,
    options: RenderOptions,
    environ: Optional[Mapping[str, str]] = None,
) -> RenderResult:
    """
    Resolve and render templates that share one values store and prompt session.

    All placeholders of all files are resolved before anything is rendered;
    the values file is persisted once resolution succeeded.
    """
    resolver = Resolver(store, prompter, options, environ)
    for tmpl in templates:
        logger.info("Resolving placeholders in %s", tmpl.source.path)
        resolver.resolve(tmpl.placeholders)
    resolver.check_complete()
    store.persist()

    documents = [
        render(tmpl.source.text, tmpl.placeholders, resolver.values, indent=options.indent)
        for tmpl in templates
    ]
    return RenderResult(documents=documents, output=join_documents(documents), records=list(prompter.records))


def process(
    sources: Sequence[TemplateSource],
    values_path: str,
    options: RenderOptions,
    prompter: Optional[PromptController] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RenderResult:
    """Run the whole pipeline over sources, in the order given."""
    if options.pattern_mode:
        check_file_types([src.path for src in sources])
    templates = scan_sources(sources)
    store = open_values_store(values_path, templates, options)
    if prompter is None:
        prompter = PromptController(context=options.context)
    return render_batch(templates, store, prompter, options, environ)
