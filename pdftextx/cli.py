"""
Command-line interface for pdftextx.
"""

import codecs
import logging
import os
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pdftextx import __version__
from pdftextx.config import ParserConfig
from pdftextx.exceptions import PdfTextError
from pdftextx.parser import Parser
from pdftextx.utils import get_logger

console = Console()
error_console = Console(stderr=True)


def _fail(message):
    error_console.print(f"[bold red]✗ Error:[/bold red] {escape(str(message))}", highlight=False)
    sys.exit(1)


def _load(input_pdf, config=None):
    try:
        return Parser(config).parse_file(input_pdf)
    except PdfTextError as e:
        _fail(e.message)


def _select_page(document, page):
    pages = document.get_pages()
    if not 1 <= page <= len(pages):
        _fail(f"Page {page} is out of range (document has {len(pages)} pages)")
    return pages[page - 1]


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose):
    """
    pdftextx - Extract text from PDF files, including damaged ones.
    """
    get_logger("pdftextx", logging.DEBUG if verbose else logging.WARNING)


@cli.command(name="text")
@click.argument('input_pdf', type=click.Path(dir_okay=False))
@click.option(
    '--page', '-p',
    help='Only extract this page (1-indexed)',
    type=int
)
@click.option(
    '--separator', '-s',
    default=None,
    help='String placed between pages, backslash escapes allowed (default: blank line)',
    type=str
)
def extract(input_pdf, page, separator):
    """
    Print the text of a PDF file.

    Examples:

        pdftextx text input.pdf

        pdftextx text input.pdf --page 2

        pdftextx text input.pdf -s '\\f'
    """
    config = ParserConfig()
    if separator is not None:
        config.page_separator = codecs.decode(separator, "unicode_escape")
    document = _load(input_pdf, config)
    if page is not None:
        text = _select_page(document, page).get_text()
    else:
        text = document.get_text()
    click.echo(text)


@cli.command(name="info")
@click.argument('input_pdf', type=click.Path(dir_okay=False))
def show_info(input_pdf):
    """
    Display document information and structural details.

    Example:

        pdftextx info input.pdf
    """
    document = _load(input_pdf)
    details = document.get_details()

    table = Table(title=f"PDF Information: {escape(os.path.basename(input_pdf))}")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("File Path", escape(os.path.abspath(input_pdf)))
    table.add_row("PDF Version", details.pdf_version or "unknown")
    table.add_row("Number of Pages", str(details.page_count))
    table.add_row("Cross-reference", details.xref_kind or "none")
    table.add_row("Recovered", "Yes" if details.recovered else "No")
    for label, value in (
        ("Title", details.title),
        ("Author", details.author),
        ("Subject", details.subject),
        ("Keywords", details.keywords),
        ("Creator", details.creator),
        ("Producer", details.producer),
        ("Created", details.creation_date),
        ("Modified", details.modification_date),
    ):
        if value:
            table.add_row(label, escape(value))

    console.print()
    console.print(table)
    console.print()


@cli.command(name="runs")
@click.argument('input_pdf', type=click.Path(dir_okay=False))
@click.option(
    '--page', '-p',
    required=True,
    help='Page number (1-indexed)',
    type=int
)
def show_runs(input_pdf, page):
    """
    List the positioned text runs of one page.

    Example:

        pdftextx runs input.pdf --page 1
    """
    document = _load(input_pdf)
    runs = _select_page(document, page).get_runs()

    table = Table(title=f"Text runs: page {page}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Font", style="cyan")
    table.add_column("Text", style="green")
    for index, run in enumerate(runs, start=1):
        table.add_row(
            str(index),
            f"{run.x:.2f}",
            f"{run.y:.2f}",
            f"{run.effective_size:.2f}",
            escape(run.font_name or ""),
            escape(repr(run.text)),
        )

    console.print(table)
    console.print(f"[dim]{len(runs)} runs[/dim]")


def main():
    cli()


if __name__ == '__main__':
    main()
