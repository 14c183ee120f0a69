from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

import typer

from .workflows.events import ResolvedEvent, ResolvingEvent
from .workflows.fetcher import FetchRequest, InternalFetchError, VASTFetcher
from .workflows.fetcher_config import DEFAULT_LOG_LEVEL, DEFAULT_MAX_WRAPPER_DEPTH, DEFAULT_TIMEOUT_MS
from .workflows.url_filters import macro_filter, query_param_filter
from .workflows.url_handler import AiohttpURLHandler

app = typer.Typer(add_help_option=False, no_args_is_help=False)

EXIT_OK = 0
EXIT_TRANSPORT_ERROR = 2
EXIT_INTERNAL_ERROR = 3
EXIT_BAD_OPTION = 4


def _minimal_help() -> str:
    return f"""vast-fetcher

Usage:
  vast-fetcher get <url> [--timeout-ms <MS>] [--with-credentials]
                         [--macro NAME=VALUE]... [--param KEY=VALUE]...
                         [--events] [--json] [--verbose]

Options:
  --timeout-ms <MS>     Transport timeout (default {DEFAULT_TIMEOUT_MS}).
  --with-credentials    Keep and send cookies.
  --macro NAME=VALUE    Replace [NAME] in the URL; [CACHEBUSTING] and [TIMESTAMP] are generated.
  --param KEY=VALUE     Add or replace a query parameter.
  --events              Print VAST-resolving / VAST-resolved payloads to stderr as JSON lines.
  --json                Print a JSON summary instead of the document.

Exit codes: 0 ok, 2 transport error, 3 internal error, 4 bad option.
"""


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, DEFAULT_LOG_LEVEL, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _parse_pairs(values: Optional[List[str]], flag: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for raw in values or []:
        key, sep, value = raw.partition("=")
        key = key.strip()
        if not sep or not key:
            typer.echo(f"error: {flag} expects NAME=VALUE, got {raw!r}", err=True)
            raise typer.Exit(code=EXIT_BAD_OPTION)
        pairs[key] = value
    return pairs


class _StderrEvents:
    def on_resolving(self, event: ResolvingEvent) -> None:
        self._write(event.name, event.to_payload())

    def on_resolved(self, event: ResolvedEvent) -> None:
        self._write(event.name, event.to_payload())

    @staticmethod
    def _write(name: str, payload: Dict[str, Any]) -> None:
        typer.echo(json.dumps({"event": name, **payload}, ensure_ascii=False, default=str), err=True)


def build_fetcher(
    *,
    timeout_ms: Optional[int],
    with_credentials: bool,
    macros: Dict[str, str],
    params: Dict[str, str],
) -> VASTFetcher:
    fetcher = VASTFetcher()
    fetcher.set_options(
        url_handler=AiohttpURLHandler(),
        timeout_ms=timeout_ms,
        send_credentials=with_credentials,
    )
    fetcher.add_url_template_filter(macro_filter(macros))
    for key, value in params.items():
        fetcher.add_url_template_filter(query_param_filter(key, value))
    return fetcher


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show help."),
) -> None:
    if help or ctx.invoked_subcommand is None:
        typer.echo(_minimal_help())
        raise typer.Exit(code=EXIT_OK)


@app.command("get", add_help_option=True)
def get_url(
    url: str = typer.Argument(..., help="VAST tag URL to fetch."),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", min=1, help="Transport timeout in milliseconds."),
    with_credentials: bool = typer.Option(False, "--with-credentials", help="Keep and send cookies."),
    macro: Optional[List[str]] = typer.Option(None, "--macro", help="NAME=VALUE macro replacement."),
    param: Optional[List[str]] = typer.Option(None, "--param", help="KEY=VALUE query parameter."),
    max_wrapper_depth: int = typer.Option(DEFAULT_MAX_WRAPPER_DEPTH, "--max-wrapper-depth", help="Reported in VAST-resolving."),
    events: bool = typer.Option(False, "--events", help="Print lifecycle events to stderr."),
    json_out: bool = typer.Option(False, "--json", help="Print a JSON summary to stdout."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    _configure_logging(verbose)
    fetcher = build_fetcher(
        timeout_ms=timeout_ms,
        with_credentials=with_credentials,
        macros=_parse_pairs(macro, "--macro"),
        params=_parse_pairs(param, "--param"),
    )
    request = FetchRequest(
        url=url,
        max_wrapper_depth=max_wrapper_depth,
        emitter=_StderrEvents() if events else None,
    )
    try:
        outcome = asyncio.run(fetcher.fetch_outcome(request))
    except Exception as exc:
        if not json_out:
            typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=EXIT_INTERNAL_ERROR)

    if outcome.ok:
        exit_code = EXIT_OK
    elif isinstance(outcome.error, InternalFetchError):
        exit_code = EXIT_INTERNAL_ERROR
    else:
        exit_code = EXIT_TRANSPORT_ERROR

    if json_out:
        summary = {
            "url": url,
            "resolved_url": outcome.url,
            "ok": outcome.ok,
            "status_code": outcome.status_code,
            "duration_ms": outcome.duration_ms,
            "stage": outcome.stage.value,
            "error": None if outcome.ok else str(outcome.error),
            "estimated_bitrate_kbps": fetcher.bitrate_estimator.estimated_bitrate,
            "document": outcome.document_text,
        }
        sys.stdout.write(json.dumps(summary, ensure_ascii=False) + "\n")
    elif outcome.ok:
        sys.stdout.write((outcome.document_text or "") + "\n")
    else:
        typer.echo(f"error: {outcome.error}", err=True)
    raise typer.Exit(code=exit_code)
