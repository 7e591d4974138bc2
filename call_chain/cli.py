#!/usr/bin/env python
"""
cli.py

Command-line entry point: build the call chain of the method at FILE:LINE.

Examples:
  # Who calls the method at line 42?
  call-chain src/main/java/com/acme/OrderService.java 42 --project-root .

  # What does it call, as a Markdown report
  call-chain OrderService.java 42 --project-root src --direction down --format markdown -o chain.md

Exit status: 0 success, 1 no method at the cursor, 2 invalid input.
"""

import argparse
import io
import logging
import sys
from pathlib import Path

from rich.console import Console

from call_chain.config import CallChainConfig
from call_chain.exceptions import CallChainError
from call_chain.metrics import get_metrics
from call_chain.models import AnalysisRequest
from call_chain.report import to_json, to_markdown, to_rich_tree, write_graphml
from call_chain.service import CallChainService
from call_chain.utils import resolve_file_path

console = Console()
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_INVALID = 2


# --------- CLI Argument Parsing ---------
def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="call-chain",
        description="Lexical call-chain analysis for Java sources",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  call-chain src/A.java 12 --project-root .
  call-chain src/A.java 12 --direction down --max-depth 5 --format json
        """,
    )
    parser.add_argument("file", help="Source file containing the method")
    parser.add_argument("line", type=int, help="1-based line inside the method")
    parser.add_argument("--project-root", default=None,
                        help="Project directory to search (default: the file's directory)")
    parser.add_argument("--direction", choices=["up", "down"], default=None,
                        help="up = callers, down = callees (default from config: up)")
    parser.add_argument("--max-depth", type=int, default=None)
    parser.add_argument("--format", choices=["tree", "markdown", "json", "graphml"], default="tree")
    parser.add_argument("-o", "--output", default=None, help="Write the report to this file")
    parser.add_argument("--no-regex", action="store_true",
                        help="Disable regex-literal detection in the lexer")
    parser.add_argument("--exclude-dirs", nargs="*", default=[])
    parser.add_argument("--exclude-globs", nargs="*", default=[])
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--quiet", action="store_true")
    return parser.parse_args(argv)


def _build_config(opts: dict) -> CallChainConfig:
    config = CallChainConfig.from_env()
    if opts.get("max_depth") is not None:
        config.max_depth = opts["max_depth"]
    if opts.get("direction"):
        config.default_direction = opts["direction"]
    if opts.get("no_regex"):
        config.detect_regex_literals = False
    config.exclude_dirs = list(config.exclude_dirs) + list(opts.get("exclude_dirs") or [])
    config.exclude_globs = list(config.exclude_globs) + list(opts.get("exclude_globs") or [])
    return config


def _configure_logging(opts: dict, config: CallChainConfig) -> None:
    if opts.get("verbose"):
        level = logging.DEBUG
    elif opts.get("quiet"):
        level = logging.WARNING
    else:
        level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


def main(argv=None) -> int:
    opts = vars(parse_args(argv))
    config = _build_config(opts)
    _configure_logging(opts, config)

    if opts["line"] < 1:
        console.print(f"[red]Error: line must be >= 1, got {opts['line']}[/red]")
        return EXIT_INVALID

    project_root = opts.get("project_root") or str(Path(opts["file"]).resolve().parent)
    file_path = resolve_file_path(opts["file"], project_root)
    if not Path(file_path).is_file():
        console.print(f"[red]Error: File does not exist: {opts['file']}[/red]")
        return EXIT_INVALID

    try:
        service = CallChainService.for_directory(project_root, config)
    except CallChainError as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_INVALID

    request = AnalysisRequest(
        file_path=file_path,
        line=opts["line"] - 1,
        direction=config.default_direction,
    )
    response = service.analyze(request)

    if response.error:
        if response.error_type == "not_found":
            console.print(f"[yellow]{response.message}[/yellow]")
            return EXIT_NOT_FOUND
        console.print(f"[red]Error: {response.message}[/red]")
        return EXIT_INVALID

    result = response.result
    fmt = opts["format"]
    output = opts.get("output")

    if fmt == "graphml":
        target = output or "call_chain.graphml"
        write_graphml(result, target)
        console.print(f"[green]✅ Call graph written: {target}[/green]")
    elif fmt == "tree" and not output:
        console.print(to_rich_tree(result, project_root))
    else:
        if fmt == "json":
            content = to_json(result)
        elif fmt == "markdown":
            content = to_markdown(result)
        else:
            rec = Console(record=True, width=120, file=io.StringIO())
            rec.print(to_rich_tree(result, project_root))
            content = rec.export_text()
        if output:
            Path(output).write_text(content, encoding="utf-8")
            console.print(f"[green]✅ Report written: {output}[/green]")
        else:
            console.print(content, markup=False, highlight=False, soft_wrap=True)

    if not opts.get("quiet"):
        console.print(
            f"[blue]📊 depth {result.depth}, {result.total_methods} methods "
            f"({result.direction.display_name})[/blue]"
        )
    get_metrics().log_summary(logging.DEBUG)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
