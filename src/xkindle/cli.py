"""Typer CLI entrypoint for xkindle."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
from pydantic import ValidationError

from xkindle.assembler import assemble
from xkindle.config import Settings
from xkindle.cover import fetch_cover
from xkindle.extractor import UNKNOWN_AUTHOR, extract_from_snapshot, snapshot_from_html
from xkindle.naming import derive_title
from xkindle.pipeline import run_pipeline

app = typer.Typer(help="Send X articles to a Kindle as EPUB attachments.", no_args_is_help=True)


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ValidationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v")) -> None:
    """xkindle command group."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def send(
    url: str = typer.Argument(..., help="X/Twitter article URL."),
    destination: str = typer.Argument(..., help="Kindle (or any) destination email address."),
) -> None:
    """Fetch one article, build an EPUB and email it."""

    settings = _load_settings()
    result = run_pipeline(url, destination, settings=settings)

    typer.echo(json.dumps(result.to_payload(), ensure_ascii=False, indent=2))
    if not result.ok:
        raise typer.Exit(code=1)


@app.command()
def preview(
    html_file: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False),
    output: Path | None = typer.Option(None, dir_okay=False),
) -> None:
    """Build the EPUB for a saved article page without a browser or delivery."""

    settings = _load_settings()
    result = extract_from_snapshot(snapshot_from_html(html_file.read_text(encoding="utf-8")))
    if result.text is None:
        typer.echo("Failed to extract text from the X Article.", err=True)
        raise typer.Exit(code=1)

    author = result.author or UNKNOWN_AUTHOR
    title = derive_title(result.text, author, result.article_title)
    document = assemble(
        title,
        author,
        result.text,
        publisher=settings.publisher,
        cover=fetch_cover(settings.cover_url, settings.cover_timeout_seconds),
        published_at=result.published_at,
    )

    target = output or html_file.parent / document.attachment_filename
    target.write_bytes(document.byte_buffer)
    typer.echo(f"Title: {document.title}")
    typer.echo(f"Author: {document.author}")
    typer.echo(f"Output: {target}")
