from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from dotenv import load_dotenv

from .core.keys import (
    K_REQ_IDENTIFY_AS_BOT,
    K_REQ_MARKUP,
    K_REQ_MODE,
    K_REQ_PAGE_TYPE,
    K_REQ_URL,
    K_REQ_USE_PROXY_STRATEGY,
    K_REQ_USE_SCRAPING_PROVIDER,
)
from .service import handle_audit_request
from .workflows.audit_config import DEFAULT_PAGE_TYPE
from .workflows.providers import load_provider_config

app = typer.Typer(add_help_option=False, no_args_is_help=False)

_EXIT_CODES = {200: 0, 400: 2, 500: 3}


def _minimal_help() -> str:
    return """GEO audit (machine-readability score)

Usage:
  geo-audit audit <url> [--page-type <TYPE>] [--proxy-strategy] [--provider] [--bot] [--pretty]
  geo-audit audit-markup <file.html|-> [--url <LABEL>] [--page-type <TYPE>] [--pretty]

Common options:
  --page-type <TYPE>        Page type recorded in the report (default: article).
  --provider-config <PATH>  Scraping provider JSON config (default: scraping-config.json).
  --pretty                  Indent the JSON report.
  --verbose                 Debug logging on stderr.

Discoverability:
  --help-full     Expanded help + env vars + exit codes.
  --find <query>  Search commands, flags, env vars.
"""


def _help_full() -> str:
    return """GEO audit CLI

Commands:
  audit          Retrieve a URL through the strategy cascade and audit it.
  audit-markup   Audit markup read from a file or stdin (no network access).

Retrieval flags (audit):
  --bot             Try an openly identified audit bot first.
  --provider        Try the configured scraping provider before local strategies.
  --proxy-strategy  Try the advanced-bypass strategies (cache, archive, crawler UAs, ...).
  The scraping provider is always tried last when configured.

Output:
  The AuditReport JSON is written to stdout; logs go to stderr.

Exit codes:
  0  report produced
  2  invalid input (bad URL, markup too short)
  3  retrieval or analysis failed

Important env vars:
  GEO_AUDIT_PROVIDER_CONFIG
  GEO_AUDIT_PROXY_URL
  GEO_AUDIT_VERIFY_TLS
  GEO_AUDIT_CHALLENGE_DELAY

Troubleshooting:
  - If every strategy is blocked, save the page from a browser and use audit-markup.
  - The local fallback needs wget on PATH; it is skipped otherwise.
"""


_FIND_INDEX = [
    ("command", "audit", "Retrieve a URL and audit it."),
    ("command", "audit-markup", "Audit markup from a file or stdin."),
    ("flag", "--page-type", "Page type recorded in the report."),
    ("flag", "--proxy-strategy", "Enable the advanced-bypass strategies."),
    ("flag", "--provider", "Try the scraping provider first."),
    ("flag", "--bot", "Try an identified audit bot first."),
    ("flag", "--provider-config", "Path to the scraping provider JSON config."),
    ("flag", "--url", "Label for pasted markup."),
    ("flag", "--pretty", "Indent the JSON report."),
    ("flag", "--verbose", "Debug logging on stderr."),
    ("flag", "--help-full", "Expanded help, env vars, exit codes."),
    ("flag", "--find", "Search commands, flags, env vars."),
    ("env", "GEO_AUDIT_PROVIDER_CONFIG", "Scraping provider config path."),
    ("env", "GEO_AUDIT_PROXY_URL", "Outbound proxy for browser/basic/bypass strategies."),
    ("env", "GEO_AUDIT_VERIFY_TLS", "Set 0 to disable TLS verification."),
    ("env", "GEO_AUDIT_CHALLENGE_DELAY", "Seconds to wait before the CDN-challenge retry."),
]


def _run_find(query: str) -> str:
    needle = (query or "").strip().lower()
    if not needle:
        return ""
    lines = []
    for category, name, desc in _FIND_INDEX:
        haystack = f"{category} {name} {desc}".lower()
        if needle in haystack:
            lines.append(f"{category} {name} - {desc}")
    return "\n".join(lines)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _emit(status: int, body: Dict[str, Any], pretty: bool) -> None:
    sys.stdout.write(json.dumps(body, ensure_ascii=False, indent=2 if pretty else None) + "\n")
    if status != 200:
        typer.echo(f"error: {body.get('details') or body.get('error')}", err=True)
    raise typer.Exit(code=_EXIT_CODES.get(status, 3))


def _read_markup(path_or_dash: str) -> str:
    if path_or_dash == "-":
        return sys.stdin.read()
    return Path(path_or_dash).read_text(encoding="utf-8", errors="replace")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show minimal help."),
    help_full: bool = typer.Option(False, "--help-full", is_eager=True, help="Show expanded help."),
    find: Optional[str] = typer.Option(None, "--find", is_eager=True, help="Search commands, flags, env vars."),
) -> None:
    load_dotenv(override=True)
    if help_full:
        typer.echo(_help_full())
        raise typer.Exit(code=0)
    if find is not None:
        output = _run_find(find)
        if output:
            typer.echo(output)
        raise typer.Exit(code=0)
    if help or ctx.invoked_subcommand is None:
        typer.echo(_minimal_help())
        raise typer.Exit(code=0)


@app.command("audit", add_help_option=True)
def audit_url(
    url: str = typer.Argument(..., help="URL to audit."),
    page_type: str = typer.Option(DEFAULT_PAGE_TYPE, "--page-type", help="Page type recorded in the report."),
    proxy_strategy: bool = typer.Option(False, "--proxy-strategy", help="Enable the advanced-bypass strategies."),
    provider: bool = typer.Option(False, "--provider", help="Try the scraping provider first."),
    bot: bool = typer.Option(False, "--bot", help="Try an identified audit bot first."),
    provider_config: Optional[Path] = typer.Option(None, "--provider-config", help="Scraping provider JSON config."),
    pretty: bool = typer.Option(False, "--pretty", help="Indent the JSON report."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
) -> None:
    _configure_logging(verbose)
    payload = {
        K_REQ_MODE: "url",
        K_REQ_URL: url,
        K_REQ_PAGE_TYPE: page_type,
        K_REQ_USE_PROXY_STRATEGY: proxy_strategy,
        K_REQ_USE_SCRAPING_PROVIDER: provider,
        K_REQ_IDENTIFY_AS_BOT: bot,
    }
    status, body = handle_audit_request(payload, load_provider_config(provider_config))
    _emit(status, body, pretty)


@app.command("audit-markup", add_help_option=True)
def audit_markup(
    path_or_dash: str = typer.Argument(..., help="Path to an HTML file or '-' for stdin."),
    url: Optional[str] = typer.Option(None, "--url", help="Label for the report url field."),
    page_type: str = typer.Option(DEFAULT_PAGE_TYPE, "--page-type", help="Page type recorded in the report."),
    pretty: bool = typer.Option(False, "--pretty", help="Indent the JSON report."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
) -> None:
    _configure_logging(verbose)
    try:
        markup = _read_markup(path_or_dash)
    except OSError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2)
    payload = {K_REQ_MODE: "markup", K_REQ_MARKUP: markup, K_REQ_URL: url, K_REQ_PAGE_TYPE: page_type}
    status, body = handle_audit_request(payload, load_provider_config())
    _emit(status, body, pretty)


if __name__ == "__main__":
    app()
