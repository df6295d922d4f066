#!/usr/bin/env python3
import argparse
import logging
import os
import sys
from typing import List

from tplenv_lib import (
    PromptController,
    RenderOptions,
    TplenvError,
    __version__,
    discover,
    format_exports,
    load_sources,
    process,
)

logger = logging.getLogger(__name__)

DEFAULT_VALUES_FILE = "Values.yaml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tplenv",
        description=(
            "Substitute {{NAME}} / ${NAME} / $NAME placeholders from environment variables and "
            "{{ .Values.key }} placeholders from a YAML values file."
        ),
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("-f", "--file", help="Input file (e.g. a YAML manifest or Markdown document)")
    target.add_argument(
        "--file-pattern",
        help=(
            "Process every file matching this pattern as one multi-document output. "
            "'*' and '?' glob the file name, <NUM> matches digits and orders files numerically. "
            "Example: --file-pattern 'deploy/<NUM>-*.yaml'"
        ),
    )
    parser.add_argument(
        "--values-file",
        "--values",
        dest="values_file",
        default=os.environ.get("TPLENV_VALUES_FILE", DEFAULT_VALUES_FILE),
        help="YAML values file (default: $TPLENV_VALUES_FILE or ./Values.yaml)",
    )
    parser.add_argument("-o", "--output", help='Output file (default: stdout). Use "-" for stdout.')
    parser.add_argument("-v", "--verbose", action="store_true", help="Report every substitution on stderr")
    parser.add_argument(
        "--create-values-file",
        action="store_true",
        help="Ask for missing values and create/update the values file before rendering",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="With --create-values-file, ask for all values (current ones are offered as defaults)",
    )
    parser.add_argument(
        "--value-file-only",
        action="store_true",
        help="Resolve {{NAME}} from environment.NAME in the values file instead of OS environment variables",
    )
    parser.add_argument(
        "--eval",
        action="store_true",
        help="Print export statements for every prompted value to stdout (for eval in a shell); "
        "rendered output is only kept when --output is given",
    )
    parser.add_argument(
        "--indent",
        action="store_true",
        help="Render multiline values as indented YAML block scalars",
    )
    parser.add_argument(
        "--context",
        action="store_true",
        help="Show the template line around each placeholder before prompting for it",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _write_output(output: str | None, text: str) -> None:
    if output is None or output == "-":
        sys.stdout.write(text)
        sys.stdout.flush()
        return
    with open(output, "w", encoding="utf-8") as f:
        f.write(text)


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.force and not args.create_values_file:
        parser.error("--force can only be used together with --create-values-file")

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(message)s",
        stream=sys.stderr,
    )

    options = RenderOptions(
        create_values_file=args.create_values_file,
        force=args.force,
        value_file_only=args.value_file_only,
        indent=args.indent,
        context=args.context,
        pattern_mode=args.file_pattern is not None,
    )

    try:
        paths = discover(args.file_pattern) if args.file_pattern else [args.file]
        sources = load_sources(paths)
        result = process(sources, args.values_file, options, prompter=PromptController(context=args.context))
    except TplenvError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    to_file = args.output is not None and args.output != "-"
    # With --eval, stdout carries only the export statements
    if args.eval and not to_file:
        logger.warning("--eval without --output: rendered output suppressed, stdout carries only export statements")
    else:
        try:
            _write_output(args.output, result.output)
        except OSError as e:
            print(f"error: failed to write output file {args.output}: {e}", file=sys.stderr)
            return 1

    if args.eval:
        sys.stdout.write(format_exports(result.records))
        sys.stdout.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
