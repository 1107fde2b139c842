"""
CLI entry point: ties together parser → checks → remediation → reporter.

Usage:
  # Scan a workflow and pin its references in place:
  python3 -m pinwarden scan .github/workflows/ci.yml

  # Only show what would change:
  python3 -m pinwarden scan .github/workflows/ --dry-run

  # Run selected checks and write the result elsewhere:
  python3 -m pinwarden scan ci.yml --check unstable-github-ref --out pinned/ci.yml

  # Scan a workflow straight from GitHub (shows a diff):
  python3 -m pinwarden scan https://github.com/org/repo/blob/main/.github/workflows/ci.yml

Exit codes:
  0  no recommendations
  1  recommendations found (and applied, unless --dry-run/--show-diff)
  2  error (bad input, unreadable workflow, API failure)
"""

import difflib
import fnmatch
import logging
import os
import sys
import threading
from dataclasses import dataclass
from typing import Optional

import click

from pinwarden.cache import ClassificationCache
from pinwarden.checks import CHECK_ORDER, CheckContext
from pinwarden.config import load_config
from pinwarden.errors import CacheError, PinwardenError, ScanCancelled
from pinwarden.github.client import GitHubClient, parse_blob_url
from pinwarden.parser import find_workflow_files
from pinwarden.reporter import report_console, report_json, report_sarif
from pinwarden.scanner import Scanner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


@dataclass
class Document:
    """A workflow to scan and where its remediated text goes."""
    label: str
    content: str
    path: Optional[str] = None   # None for downloaded documents


def _setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _read(path: str) -> str:
    with open(path, "r", newline="") as f:
        return f.read()


def _write(path: str, content: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", newline="") as f:
        f.write(content)


def _open_cache(path: Optional[str]) -> ClassificationCache:
    if path is None:
        return ClassificationCache()
    try:
        return ClassificationCache(path)
    except CacheError as e:
        logger.warning("Falling back to an in-memory cache: %s", e)
        click.echo(f"Warning: {e}; using an in-memory cache.", err=True)
        return ClassificationCache()


def _diff(document: Document, updated: str) -> str:
    return "".join(difflib.unified_diff(
        document.content.splitlines(keepends=True),
        updated.splitlines(keepends=True),
        fromfile=document.label,
        tofile=f"{document.label} (pinned)",
    ))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
def cli(verbose: bool):
    """Pin GitHub Actions workflow references to immutable, verified commits."""
    _setup_logging(verbose)


@cli.command()
@click.argument("path")
@click.option("--check", "checks", multiple=True, type=click.Choice(list(CHECK_ORDER)), help="Check(s) to run. Repeatable; all checks run when omitted.")
@click.option("--out", "out_path", default=None, help="Write the updated workflow to this file instead of in place.")
@click.option("--dry-run", is_flag=True, help="Print recommendations and a diff, but do not change any file.")
@click.option("--quiet", is_flag=True, help="Do not print explanations; only update the workflow.")
@click.option("--show-diff", is_flag=True, help="Show a diff instead of writing the file.")
@click.option("--format", "output_format", type=click.Choice(["console", "json", "sarif"]), default="console", help="Report format.")
@click.option("--config", "config_path", default=None, help="Path to .pinwarden.yml config file.")
@click.option("--cache-path", default=None, help="Classification cache file (overrides config file).")
@click.option("--no-cache", is_flag=True, help="Keep the classification cache in memory for this run only.")
def scan(
    path: str,
    checks: tuple,
    out_path: Optional[str],
    dry_run: bool,
    quiet: bool,
    show_diff: bool,
    output_format: str,
    config_path: Optional[str],
    cache_path: Optional[str],
    no_cache: bool,
):
    """Scan workflow files for references that can change underneath you.

    PATH is a workflow file, a directory of workflows, or a github.com blob URL.
    Exits with code 0 if nothing is found, 1 if recommendations were found,
    2 on error.
    """
    blob = parse_blob_url(path)
    scan_path = None if blob else os.path.abspath(path)

    config = load_config(config_path=config_path, scan_path=scan_path)
    cancel_event = threading.Event()
    client = GitHubClient(token=config.token, api_url=config.api_url, cancel_event=cancel_event)

    # Collect documents
    documents: list[Document] = []
    try:
        if blob:
            owner, repo, ref, file_path = blob
            content = client.get_file_contents(owner, repo, file_path, ref)
            documents.append(Document(label=path, content=content))
            # Downloaded workflows have nowhere to be written back to
            show_diff = True
        elif os.path.isfile(scan_path):
            documents.append(Document(label=scan_path, content=_read(scan_path), path=scan_path))
        elif os.path.isdir(scan_path):
            for file in find_workflow_files(scan_path):
                if any(fnmatch.fnmatch(file, pat) for pat in config.exclude):
                    logger.info("Excluded %s via config", file)
                    continue
                documents.append(Document(label=file, content=_read(file), path=file))
        else:
            click.echo(f"Error: '{path}' is not a file, directory, or GitHub URL.", err=True)
            sys.exit(EXIT_ERROR)
    except PinwardenError as e:
        click.echo(f"Error downloading workflow: {e}", err=True)
        sys.exit(EXIT_ERROR)
    except OSError as e:
        click.echo(f"Error reading workflow: {e}", err=True)
        sys.exit(EXIT_ERROR)

    if not documents:
        click.echo("No workflow files found.")
        sys.exit(EXIT_OK)

    if out_path and len(documents) > 1:
        click.echo("Error: --out can only be used when scanning a single workflow.", err=True)
        sys.exit(EXIT_ERROR)

    enabled = list(checks) or config.checks
    cache = _open_cache(None if no_cache else (cache_path or config.resolved_cache_path))
    context = CheckContext.build(
        client,
        cache,
        pin_length=config.pin_length,
        default_branch_names=config.default_branch_names,
        max_workers=config.max_workers,
        cancel_event=cancel_event,
    )

    # Scan every document
    all_issues = []
    results: list[tuple[Document, str]] = []
    try:
        for document in documents:
            scanner = Scanner(document.content, context, file_path=document.label)
            if enabled:
                scanner.enable_checks(enabled)
            else:
                scanner.enable_all_checks()
            all_issues.extend(scanner.scan())
            results.append((document, scanner.remediated_content))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)
    except ScanCancelled:
        click.echo("Scan cancelled.", err=True)
        sys.exit(EXIT_ERROR)
    except KeyboardInterrupt:
        cancel_event.set()
        click.echo("Scan cancelled.", err=True)
        sys.exit(EXIT_ERROR)
    except PinwardenError as e:
        click.echo(f"Error: failed to scan workflow: {e}", err=True)
        sys.exit(EXIT_ERROR)
    finally:
        cache.close()

    if not all_issues:
        click.echo("No recommendations found!")
        sys.exit(EXIT_OK)

    if not quiet:
        if output_format == "json":
            click.echo(report_json(all_issues))
        elif output_format == "sarif":
            click.echo(report_sarif(all_issues))
        else:
            report_console(all_issues, file_path=path)

    # Diffs go to stderr when stdout carries a machine-readable report
    diff_to_stderr = output_format != "console"
    for document, updated in results:
        if updated == document.content:
            continue
        if show_diff or dry_run:
            click.echo(_diff(document, updated), err=diff_to_stderr)
            continue
        target = out_path or document.path
        try:
            _write(target, updated)
        except OSError as e:
            click.echo(f"Error: failed to update workflow with remediations: {e}", err=True)
            sys.exit(EXIT_ERROR)
        logger.info("Wrote remediated workflow to %s", target)

    sys.exit(EXIT_FINDINGS)


if __name__ == "__main__":
    cli()
