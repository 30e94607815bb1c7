#!/usr/bin/env python3
"""
dshelf: CLI for the docshelf document manager

Usage:
    dshelf list --query=pric               # Fuzzy filename search
    dshelf list --sort=created_date --desc # Sorted listing
    dshelf score "pricing-guide.pdf" pdf   # Explain a match score
    dshelf facets                          # Available filter values
    dshelf serve                           # Run the web API
"""

from __future__ import annotations

import difflib
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError

from . import __version__ as DOCSHELF_VERSION
from .config import ALL, SORTABLE_FIELDS
from .errors import DocshelfError, ErrorCode, format_error_json


def _truncate(value: object, limit: int) -> str:
    text = str(value)
    return text if len(text) <= limit else text[: limit - 3] + "..."


def format_table(rows: list[dict], columns: list[str], max_widths: dict | None = None) -> str:
    """Render rows as aligned plain-text columns under an uppercased header.

    Cells longer than their column's limit (default 50) are cut with "...".
    """
    if not rows:
        return ""

    limits = {col: (max_widths or {}).get(col, 50) for col in columns}
    cells = [[_truncate(row.get(col, ""), limits[col]) for col in columns] for row in rows]
    widths = [
        max(len(col), *(len(line[i]) for line in cells))
        for i, col in enumerate(columns)
    ]

    def render(values) -> str:
        return "  ".join(value.ljust(width) for value, width in zip(values, widths))

    table = [render(col.upper() for col in columns), render("-" * width for width in widths)]
    table.extend(render(line) for line in cells)
    return "\n".join(table)


def output(data, as_json: bool = False):
    """Echo data, pretty-printed as JSON when as_json is set."""
    click.echo(json.dumps(data, indent=2, default=str) if as_json else data)


def _handle_error(ctx: click.Context, error: Exception, exit_code: int = 1) -> NoReturn:
    """Report an error as text, or as JSON when --json-errors is set."""
    if not isinstance(error, DocshelfError):
        error = DocshelfError(str(error), code=ErrorCode.INTERNAL_ERROR)

    if ctx.obj and ctx.obj.get("json_errors"):
        click.echo(error.to_json(), err=True)
    else:
        click.echo(f"Error: {error.message}", err=True)
        for item in error.details.get("errors", []):
            click.echo(f"  {item['field']}: {item['message']}", err=True)

    sys.exit(exit_code)


# Most specific first; click's exceptions subclass one another
_CLICK_ERROR_CODES: tuple[tuple[type[Exception], str], ...] = (
    (click.BadParameter, "INVALID_ARGUMENT"),
    (click.MissingParameter, "MISSING_ARGUMENT"),
    (click.NoSuchOption, "UNKNOWN_OPTION"),
    (UsageError, "USAGE_ERROR"),
    (ClickException, "CLI_ERROR"),
)


def get_error_code_for_exception(exc: Exception) -> str:
    """Error code reported for a click parsing failure under --json-errors."""
    for exc_type, code in _CLICK_ERROR_CODES:
        if isinstance(exc, exc_type):
            return code
    return "UNKNOWN_ERROR"


# ─────────────────────────────────────────────────────────────────────────────
# Command Group
# ─────────────────────────────────────────────────────────────────────────────


class JsonErrorGroup(click.Group):
    """Command group with typo suggestions and JSON reporting of usage errors.

    ``--json-errors`` may appear anywhere on the command line; it is hoisted
    to the group so subcommands do not have to declare it.
    """

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            typed = args[0] if args else ""
            if not typed or "No such command" not in str(e):
                raise
            suggestion = difflib.get_close_matches(typed, self.list_commands(ctx), n=1, cutoff=0.6)
            if not suggestion:
                raise
            raise UsageError(f"No such command '{typed}'. Did you mean '{suggestion[0]}'?") from None

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        argv = list(sys.argv[1:] if args is None else args)
        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        argv = ["--json-errors", *(arg for arg in argv if arg != "--json-errors")]
        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except ClickException as e:
            click.echo(format_error_json(get_error_code_for_exception(e), e.format_message()), err=True)
            raise SystemExit(1)


def _load_library(ctx: click.Context, documents_file: str | None):
    from .core import Library
    from .storage import load_collection, sample_collection

    try:
        collection = load_collection(Path(documents_file)) if documents_file else sample_collection()
    except DocshelfError as e:
        _handle_error(ctx, e)
    return Library.from_collection(collection)


_documents_option = click.option(
    "--documents",
    "documents_file",
    type=click.Path(dir_okay=False),
    envvar="DOCSHELF_DOCUMENTS_FILE",
    help="JSON or YAML collection file (default: built-in sample data)",
)


@click.group(cls=JsonErrorGroup)
@click.version_option(version=DOCSHELF_VERSION, prog_name="dshelf")
@click.option("--json-errors", is_flag=True, help="Report errors as JSON on stderr")
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="DOCSHELF_QUIET",
    help="Only log errors",
)
@click.pass_context
def cli(ctx: click.Context, json_errors: bool, quiet: bool):
    """dshelf: browse and search knowledge base documents.

    \b
    Quick start:
      dshelf list                            # First page of documents
      dshelf list --query=guide              # Fuzzy filename search
      dshelf list --type=PDF --since=2024-10-01
      dshelf serve                           # REST API on :8080
    """
    ctx.ensure_object(dict)
    ctx.obj.update(json_errors=json_errors, quiet=quiet)

    if quiet:
        from ._logging import set_quiet_mode

        set_quiet_mode(True)


# ─────────────────────────────────────────────────────────────────────────────
# List Command
# ─────────────────────────────────────────────────────────────────────────────


@cli.command("list")
@_documents_option
@click.option("--query", "-s", default="", help="Fuzzy filename search")
@click.option("--type", "doc_type", default=ALL, help="Filter by document type")
@click.option("--author", default=ALL, help="Filter by creator")
@click.option("--since", type=click.DateTime(formats=["%Y-%m-%d"]), help="Created on or after")
@click.option("--until", type=click.DateTime(formats=["%Y-%m-%d"]), help="Created on or before")
@click.option("--sort", type=click.Choice(SORTABLE_FIELDS), help="Sort column")
@click.option("--desc", is_flag=True, help="Sort descending (requires --sort)")
@click.option("--page", "-p", default=1, type=int, help="Page number (1-based)")
@click.option("--kb", "knowledge_base_id", help="Only documents in this knowledge base")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_documents(
    ctx: click.Context,
    documents_file: str | None,
    query: str,
    doc_type: str,
    author: str,
    since,
    until,
    sort: str | None,
    desc: bool,
    page: int,
    knowledge_base_id: str | None,
    as_json: bool,
):
    """List documents with filters, sorting and pagination.

    Without --sort, filename matches are ordered by relevance.

    \b
    Examples:
      dshelf list --query=pric
      dshelf list --type=CSV --author=sales@visualhive.com
      dshelf list --sort=filename --desc --page=2
      dshelf list --documents=docs.yaml --json
    """
    from .filters import has_active_filters
    from .models import DateRange, FilterCriteria, SortState

    if desc and not sort:
        raise UsageError("--desc requires --sort")

    library = _load_library(ctx, documents_file)
    criteria = FilterCriteria(
        query=query,
        type=doc_type,
        author=author,
        date_range=DateRange(
            start=since.date() if since else None,
            end=until.date() if until else None,
        ),
    )
    sort_state = SortState(field=sort, direction="desc" if desc else "asc") if sort else SortState()

    try:
        result = library.list_documents(criteria, sort_state, page, knowledge_base_id=knowledge_base_id)
    except DocshelfError as e:
        _handle_error(ctx, e)

    if as_json:
        output(result.model_dump(mode="json"), as_json=True)
        return

    if not result.items:
        if has_active_filters(criteria):
            click.echo("No documents match the current filters.")
        else:
            click.echo("No documents found.")
    else:
        rows = [
            {
                "filename": doc.filename,
                "type": doc.type,
                "created_by": doc.created_by,
                "created": doc.created_date.isoformat(),
                "updated": doc.last_updated.isoformat(),
            }
            for doc in result.items
        ]
        click.echo(format_table(
            rows,
            ["filename", "type", "created_by", "created", "updated"],
            {"filename": 40, "created_by": 30},
        ))

    click.echo(f"\nPage {result.page} of {result.total_pages} ({result.total_items} documents)")


# ─────────────────────────────────────────────────────────────────────────────
# Score Command
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("candidate")
@click.argument("query")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def score(candidate: str, query: str, as_json: bool):
    """Show the fuzzy match score of QUERY against CANDIDATE (0-100).

    \b
    Examples:
      dshelf score pricing-guide.pdf pric     # 90, substring
      dshelf score pricing-guide.pdf pgd      # subsequence
    """
    from .matcher import highlight_segments
    from .matcher import score as fuzzy_score

    value = fuzzy_score(candidate, query)
    if as_json:
        output({"candidate": candidate, "query": query, "score": value}, as_json=True)
        return

    highlighted = "".join(
        click.style(part, bold=True, fg="yellow") if is_match else part
        for part, is_match in highlight_segments(candidate, query)
    )
    click.echo(f"{value:>3}  {highlighted}")
    if value == 0:
        click.echo("No match: this document would be excluded.")


# ─────────────────────────────────────────────────────────────────────────────
# Facets Command
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@_documents_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def facets(ctx: click.Context, documents_file: str | None, as_json: bool):
    """List the document types and authors available as filters."""
    from .filters import facet_values

    library = _load_library(ctx, documents_file)
    values = facet_values(library.documents)

    if as_json:
        output(values, as_json=True)
        return

    click.echo("Types:   " + ", ".join(values["types"]))
    click.echo("Authors: " + ", ".join(values["authors"]))


# ─────────────────────────────────────────────────────────────────────────────
# Export Command
# ─────────────────────────────────────────────────────────────────────────────


@cli.command("export-csv")
@click.argument("results_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", "output_file", type=click.Path(dir_okay=False), help="Write to file")
@click.pass_context
def export_csv(ctx: click.Context, results_file: str, output_file: str | None):
    """Convert saved content search results (JSON list) to CSV.

    \b
    Examples:
      dshelf export-csv results.json
      dshelf export-csv results.json -o search-results.csv
    """
    import pydantic

    from .core import export_results_csv
    from .models import ContentSearchResult

    try:
        raw = json.loads(Path(results_file).read_text(encoding="utf-8"))
        results = [ContentSearchResult.model_validate(item) for item in raw]
    except (OSError, json.JSONDecodeError, TypeError, pydantic.ValidationError) as e:
        _handle_error(ctx, DocshelfError(
            f"Could not read search results from {results_file}: {e}",
            code=ErrorCode.FILE_READ_ERROR,
        ))

    text = export_results_csv(results)
    if output_file:
        Path(output_file).write_text(text, encoding="utf-8")
        click.echo(f"Wrote {len(results)} results to {output_file}")
    else:
        click.echo(text, nl=False)


# ─────────────────────────────────────────────────────────────────────────────
# Serve Command
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default="127.0.0.1", envvar="HOST", help="Bind address")
@click.option("--port", default=8080, type=int, envvar="PORT", help="Port")
def serve(host: str, port: int):
    """Run the REST API.

    Content search and processing need DOCSHELF_WORKFLOW_URL.
    """
    import uvicorn

    from .webapp.api import app

    uvicorn.run(app, host=host, port=port)


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def main():
    """Entry point for dshelf CLI."""
    from ._logging import configure_logging

    configure_logging()
    cli()


if __name__ == "__main__":
    main()
