"""CLI entry point for gcloud_wif."""

import sys
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console

from gcloud_wif import provision, summary
from gcloud_wif.config import DEFAULT_CONFIG_FILE, load_config
from gcloud_wif.expand import expand
from gcloud_wif.gcloud import set_verbose
from gcloud_wif.policy_store import IamPolicyStore
from gcloud_wif.reconcile import Reconciler
from gcloud_wif.types import DesiredState, GCloudError, WifError
from gcloud_wif.verify import verify as verify_bindings

app = typer.Typer(
    help="Set up and reconcile GitHub Actions Workload Identity Federation on Google Cloud",
    no_args_is_help=True,
)
console = Console()

CONFIG_OPTION = typer.Option(
    DEFAULT_CONFIG_FILE,
    "--config",
    "-c",
    help="YAML file describing the project, pool, service account and repositories",
)
REPO_OPTION = typer.Option(
    None,
    "--repo",
    "-r",
    help="Repository to grant access to (repeatable; replaces the configured list)",
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Print every gcloud command")


@contextmanager
def _errors() -> Iterator[None]:
    try:
        yield
    except (GCloudError, WifError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user.[/yellow]")
        sys.exit(130)


def _load(config: Path, repos: Optional[List[str]]) -> DesiredState:
    state = load_config(config, repositories=repos or None)
    if not state.project_number:
        number = provision.resolve_project_number(state.project_id)
        if not number:
            raise GCloudError(f"Project {state.project_id} was not found. Run 'setup' first.")
        state = replace(state, project_number=number)
    return state


@app.command("version")
def version():
    """Show the version of gcloud_wif."""
    from gcloud_wif import __version__

    console.print(f"gcloud_wif version: [bold green]{__version__}[/bold green]")


@app.command("setup")
def setup(
    config: Path = CONFIG_OPTION,
    repos: Optional[List[str]] = REPO_OPTION,
    billing_id: Optional[str] = typer.Option(
        None,
        "--billing",
        "-b",
        help="The billing account ID (interactive if not configured)",
    ),
    org_id: Optional[str] = typer.Option(
        None,
        "--org",
        "-o",
        help="The GCP organization ID (interactive if not configured)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Show what would be done without making changes",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    verbose: bool = VERBOSE_OPTION,
):
    """
    Provision the project, pool, provider and service account, then grant access.

    Every step checks for an existing resource before creating it, so the
    command can be re-run after adding repositories to the configuration.
    Repository bindings on the service account are reconciled to exactly the
    configured list; a legacy org-wide wildcard binding is removed.

    Examples:
        # Interactive billing/org selection
        gcloud-wif setup -c wif.yaml

        # Dry run to see what would happen
        gcloud-wif setup --dry-run
    """
    set_verbose(verbose)
    with _errors():
        state = load_config(config, repositories=repos or None)
        state = replace(
            state,
            billing_account_id=billing_id or state.billing_account_id,
            org_id=org_id or state.org_id,
        )
        outcome = provision.setup(state, dry_run=dry_run, assume_yes=yes)
        if outcome is None:
            return

        summary.print_results(outcome.results)
        if outcome.report is not None:
            summary.print_verification(outcome.report)
        if dry_run:
            console.print("[yellow]Dry run complete. No changes were made.[/yellow]")
            return

        summary.print_summary(
            outcome.state,
            billing_account_id=outcome.billing_account_id,
            org_id=outcome.org_id,
        )
        if not outcome.ok:
            sys.exit(1)


@app.command("reconcile")
def reconcile(
    config: Path = CONFIG_OPTION,
    repos: Optional[List[str]] = REPO_OPTION,
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Only show the planned changes"),
    verbose: bool = VERBOSE_OPTION,
):
    """
    Converge the IAM bindings of existing resources with the configuration.

    Exits non-zero when any binding change failed or verification finds a
    missing binding.
    """
    set_verbose(verbose)
    with _errors():
        state = _load(config, repos)
        requests = expand(state)
        reconciler = Reconciler(IamPolicyStore(), dry_run=dry_run, console=console)
        results = reconciler.reconcile_all(requests)
        summary.print_results(results)

        if dry_run:
            return

        report = verify_bindings(reconciler.store, requests, console=console)
        summary.print_verification(report)
        if any(not r.ok for r in results) or not report.converged:
            sys.exit(1)


@app.command("verify")
def verify(
    config: Path = CONFIG_OPTION,
    repos: Optional[List[str]] = REPO_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Check, without changing anything, that every configured binding is present."""
    set_verbose(verbose)
    with _errors():
        state = _load(config, repos)
        report = verify_bindings(IamPolicyStore(), expand(state), console=console)
        summary.print_verification(report)
        if not report.converged:
            sys.exit(1)


@app.command("workflow")
def workflow(config: Path = CONFIG_OPTION, verbose: bool = VERBOSE_OPTION):
    """Print the GitHub Actions snippet for the configured provider and service account."""
    set_verbose(verbose)
    with _errors():
        summary.print_workflow(_load(config, None))


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
