"""Human-readable reports and the GitHub Actions workflow snippet."""

from typing import Iterable, Optional

import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from gcloud_wif.types import DesiredState, Outcome, ReconcileResult, VerificationReport

console = Console()

_OUTCOME_STYLES = {
    Outcome.ADDED: "green",
    Outcome.REMOVED: "yellow",
    Outcome.ALREADY_SATISFIED: "dim",
    Outcome.PLANNED_ADD: "cyan",
    Outcome.PLANNED_REMOVE: "cyan",
    Outcome.FAILED: "bold red",
    Outcome.PERMISSION_DENIED: "bold red",
}


def workflow_snippet(state: DesiredState) -> str:
    """Return a workflow job that authenticates through the provider.

    Raises:
        ValueError: If the project number is unknown
    """
    workflow = {
        "jobs": {
            "deploy": {
                "runs-on": "ubuntu-latest",
                "permissions": {"contents": "read", "id-token": "write"},
                "steps": [
                    {"uses": "actions/checkout@v4"},
                    {
                        "id": "auth",
                        "uses": "google-github-actions/auth@v2",
                        "with": {
                            "workload_identity_provider": state.provider_name,
                            "service_account": state.service_account_email,
                        },
                    },
                    {"uses": "google-github-actions/setup-gcloud@v2"},
                    {"name": "Test GCP Access", "run": "gcloud auth list"},
                ],
            }
        }
    }
    return yaml.safe_dump(workflow, sort_keys=False, default_flow_style=False)


def results_table(results: Iterable[ReconcileResult]) -> Table:
    """One row per principal outcome."""
    table = Table(title="IAM Bindings", show_lines=False)
    table.add_column("Resource", style="cyan", overflow="fold")
    table.add_column("Role")
    table.add_column("Principal", overflow="fold")
    table.add_column("Outcome")

    for result in results:
        for item in result.outcomes:
            style = _OUTCOME_STYLES[item.outcome]
            label = item.outcome.value if not item.message else f"{item.outcome.value}: {item.message}"
            table.add_row(result.resource, result.role, item.principal, f"[{style}]{escape(label)}[/{style}]")
    return table


def print_results(results: list[ReconcileResult]) -> None:
    if not any(r.outcomes for r in results):
        console.print("[dim]No bindings to reconcile.[/dim]")
        return
    console.print(results_table(results))
    failures = sum(r.failure_count for r in results)
    writes = sum(r.write_count for r in results)
    colour = "red" if failures else "green"
    console.print(f"[{colour}]{writes} change(s), {failures} failure(s).[/{colour}]")


def print_verification(report: VerificationReport) -> None:
    for reason in report.unreadable:
        console.print(f"[bold red]Could not read policy:[/bold red] {escape(reason)}")
    if report.converged:
        console.print("[green]✅ IAM bindings verified.[/green]")
    else:
        console.print("[bold red]❌ IAM bindings validation failed. Missing:[/bold red]")
        for drift in report.missing:
            console.print(f"  • {drift.principal} [dim]{drift.role} on {drift.resource}[/dim]")

    if report.unexpected:
        console.print(
            "[yellow]Still bound but no longer desired "
            "(may be the IAM propagation delay; re-run to retry):[/yellow]"
        )
        for drift in report.unexpected:
            console.print(f"  • {drift.principal} [dim]{drift.role} on {drift.resource}[/dim]")


def print_summary(
    state: DesiredState,
    *,
    billing_account_id: Optional[str] = None,
    org_id: Optional[str] = None,
) -> None:
    """Print the final setup panel followed by the workflow snippet."""
    repositories = "\n".join(f"  • {state.github_org}/{repo}" for repo in state.unique_repositories())
    lines = [
        "[bold green]SETUP COMPLETE[/bold green]\n",
        f"Project:                {state.project_id} ({state.project_name or state.project_id})",
    ]
    if billing_account_id:
        lines.append(f"Billing Account:        {billing_account_id}")
    if org_id:
        lines.append(f"Organization:           {org_id}")
    lines.extend([
        f"Workload Identity Pool: {state.pool_id}",
        f"OIDC Provider:          {state.provider_id}",
        f"Service Account:        {state.service_account_email}",
        f"Service Account Roles:  {', '.join(state.service_account_roles)}",
        f"Project Roles:          {', '.join(state.project_roles)}",
        f"Repository Access:\n{repositories}",
    ])
    console.print(Panel.fit("\n".join(lines), border_style="green"))
    print_workflow(state)


def print_workflow(state: DesiredState) -> None:
    console.print("\n[bold]GitHub Actions Workflow Configuration:[/bold]\n")
    console.print(f"workload_identity_provider: '{state.provider_name}'", markup=False)
    console.print(f"service_account: '{state.service_account_email}'\n", markup=False)
    console.print("# Add to your .github/workflows/*.yml file:", markup=False)
    console.print(workflow_snippet(state), markup=False, highlight=False)


__all__ = [
    "print_results",
    "print_summary",
    "print_verification",
    "print_workflow",
    "results_table",
    "workflow_snippet",
]
