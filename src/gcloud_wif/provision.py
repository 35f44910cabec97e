"""Provision the GCP side of GitHub Actions Workload Identity Federation.

Every step is idempotent: it describes the resource first and only creates it
when missing, so the whole setup can be re-run after adding repositories or
after a partial failure.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Optional

from InquirerPy import inquirer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from gcloud_wif.expand import expand, operator_requests
from gcloud_wif.gcloud import exists, run_gcloud, run_gcloud_json
from gcloud_wif.policy_store import IamPolicyStore, PolicyStore
from gcloud_wif.reconcile import Reconciler
from gcloud_wif.types import DesiredState, GCloudError, ReconcileResult, VerificationReport, _REQUIRED_APIS
from gcloud_wif.types.constants import GITHUB_ATTRIBUTE_MAPPING, GITHUB_ISSUER_URI
from gcloud_wif.verify import verify

PROJECT_CREATION_TIMEOUT = 120.0
PROPAGATION_DELAY = 5.0

console = Console()


@dataclass
class SetupOutcome:
    """What a setup run did."""

    state: DesiredState
    billing_account_id: Optional[str] = None
    org_id: Optional[str] = None
    created: list[str] = field(default_factory=list)
    results: list[ReconcileResult] = field(default_factory=list)
    report: Optional[VerificationReport] = None

    @property
    def failure_count(self) -> int:
        return sum(r.failure_count for r in self.results)

    @property
    def ok(self) -> bool:
        converged = self.report is None or self.report.converged
        return self.failure_count == 0 and converged


def _spinner(description: str):
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    )
    progress.add_task(description=description, total=None)
    return progress


def check_authentication() -> str:
    """Return the active gcloud account.

    Raises:
        GCloudError: If no account is logged in
    """
    console.print("\n[yellow]--- Step 1: Authentication ---[/yellow]")
    account = run_gcloud(["auth", "list", "--filter=status:ACTIVE", "--format=value(account)"], check=False)
    account = account.splitlines()[0].strip() if account else ""
    if "@" not in account:
        raise GCloudError("Not logged in to gcloud. Run 'gcloud auth login' and try again.")
    console.print(f"[green]Logged in as:[/green] {account}")
    return account


def choose_billing_account(configured: Optional[str] = None) -> str:
    """Return the configured billing account, the only open one, or ask.

    Raises:
        GCloudError: If no open billing account exists
    """
    console.print("\n[yellow]--- Step 2: Billing Account ---[/yellow]")
    if configured:
        console.print(f"[green]Using configured billing account:[/green] {configured}")
        return configured

    accounts = [a for a in run_gcloud_json(["billing", "accounts", "list"]) or [] if a.get("open", False)]
    if not accounts:
        raise GCloudError("No open billing accounts found. Please create one in the GCP Console.")

    choices = [
        {
            "name": f"{a.get('displayName', '')} ({a.get('name', '').replace('billingAccounts/', '')})",
            "value": a.get("name", "").replace("billingAccounts/", ""),
        }
        for a in accounts
    ]
    if len(choices) == 1:
        console.print(f"[green]Using billing account:[/green] {choices[0]['name']}")
        return choices[0]["value"]

    return inquirer.select(message="Select billing account:", choices=choices).execute()


def choose_organization(configured: Optional[str] = None) -> Optional[str]:
    """Return the configured organization, the only visible one, or ask. ``None`` means no organization."""
    console.print("\n[yellow]--- Step 3: Organization ---[/yellow]")
    if configured:
        console.print(f"[green]Using configured organization:[/green] {configured}")
        return configured

    orgs = run_gcloud_json(["organizations", "list"]) or []
    if not orgs:
        console.print(
            "[yellow]No organizations found. "
            "The project will be created in your personal account.[/yellow]"
        )
        return None

    choices = [
        {
            "name": f"{o.get('displayName', '')} ({o.get('name', '').replace('organizations/', '')})",
            "value": o.get("name", "").replace("organizations/", ""),
        }
        for o in orgs
    ]
    if len(choices) == 1:
        console.print(f"[green]Using organization:[/green] {choices[0]['name']}")
        return choices[0]["value"]

    return inquirer.select(message="Select organization:", choices=choices).execute()


def ensure_project(state: DesiredState, org_id: Optional[str], dry_run: bool = False) -> tuple[str, bool]:
    """Create the project unless it exists; wait until it is describable.

    Returns:
        The project id and whether it was created
    """
    console.print("\n[yellow]--- Step 4: Project ---[/yellow]")
    project_id = state.project_id

    if exists(["projects", "describe", project_id]):
        console.print(f"[green]Project {project_id} already exists. Skipping creation.[/green]")
        return project_id, False

    if dry_run:
        where = f"in org {org_id}" if org_id else "(no org)"
        console.print(f"[dim][DRY RUN] Would create project: {project_id} {where}[/dim]")
        return project_id, True

    args = ["projects", "create", project_id, f"--name={state.project_name or project_id}"]
    if org_id:
        args.append(f"--organization={org_id}")

    with _spinner(f"Creating project: {project_id}..."):
        run_gcloud(args, capture=False)
        deadline = time.time() + PROJECT_CREATION_TIMEOUT
        while not exists(["projects", "describe", project_id]):
            if time.time() > deadline:
                raise GCloudError(f"Project {project_id} was not visible after {PROJECT_CREATION_TIMEOUT:.0f}s")
            time.sleep(2)

    console.print("[green]Project created.[/green]")
    return project_id, True


def link_billing_account(project_id: str, billing_id: str, dry_run: bool = False) -> bool:
    """Link ``billing_id`` to the project. Returns whether anything changed."""
    console.print("\n[yellow]--- Step 5: Billing ---[/yellow]")
    billing_account_name = f"billingAccounts/{billing_id}"

    current = run_gcloud(
        ["billing", "projects", "describe", project_id, "--format=value(billingAccountName)"],
        check=False,
    )
    if current == billing_account_name:
        console.print(f"[green]Project {project_id} is already linked to billing account {billing_id}.[/green]")
        return False

    if dry_run:
        console.print(f"[dim][DRY RUN] Would link project {project_id} to billing account {billing_id}[/dim]")
        return True

    with _spinner(f"Linking project {project_id} to billing account {billing_id}..."):
        run_gcloud(["billing", "projects", "link", project_id, f"--billing-account={billing_id}"], capture=False)

    console.print("[green]Billing account linked.[/green]")
    return True


def enable_apis(project_id: str, apis: tuple[str, ...] = _REQUIRED_APIS, dry_run: bool = False) -> None:
    """Enable the APIs Workload Identity Federation depends on (no-op when already enabled)."""
    console.print("\n[yellow]--- Step 6: APIs ---[/yellow]")
    if dry_run:
        console.print(f"[dim][DRY RUN] Would enable: {', '.join(apis)}[/dim]")
        return

    with _spinner(f"Enabling {len(apis)} APIs for project {project_id}..."):
        run_gcloud(["services", "enable", *apis, f"--project={project_id}"], capture=False)

    console.print("[green]APIs enabled.[/green]")


def resolve_project_number(project_id: str) -> Optional[str]:
    """Look up the numeric project number; ``None`` when the project does not exist."""
    number = run_gcloud(["projects", "describe", project_id, "--format=value(projectNumber)"], check=False)
    return number or None


def ensure_pool(state: DesiredState, dry_run: bool = False) -> tuple[str, bool]:
    """Create the workload identity pool unless it exists."""
    console.print("\n[yellow]--- Step 9: Workload Identity Pool ---[/yellow]")
    describe = [
        "iam", "workload-identity-pools", "describe", state.pool_id,
        f"--project={state.project_id}", "--location=global",
    ]
    if exists(describe):
        console.print(f"[green]Pool {state.pool_id} already exists. Skipping creation.[/green]")
        return state.pool_id, False

    if dry_run:
        console.print(f"[dim][DRY RUN] Would create workload identity pool: {state.pool_id}[/dim]")
        return state.pool_id, True

    with _spinner(f"Creating workload identity pool: {state.pool_id}..."):
        run_gcloud([
            "iam", "workload-identity-pools", "create", state.pool_id,
            f"--project={state.project_id}",
            "--location=global",
            "--display-name=GitHub Actions Pool",
        ], capture=False)

    console.print("[green]Pool created.[/green]")
    return state.pool_id, True


def ensure_provider(state: DesiredState, dry_run: bool = False) -> tuple[str, bool]:
    """Create the GitHub OIDC provider unless it exists.

    The attribute condition restricts the provider to tokens issued for
    repositories of ``state.github_org``.
    """
    console.print("\n[yellow]--- Step 10: OIDC Provider ---[/yellow]")
    describe = [
        "iam", "workload-identity-pools", "providers", "describe", state.provider_id,
        "--location=global",
        f"--workload-identity-pool={state.pool_id}",
        f"--project={state.project_id}",
    ]
    if exists(describe):
        console.print(f"[green]Provider {state.provider_id} already exists. Skipping creation.[/green]")
        return state.provider_id, False

    if dry_run:
        console.print(f"[dim][DRY RUN] Would create OIDC provider: {state.provider_id}[/dim]")
        return state.provider_id, True

    with _spinner(f"Creating OIDC provider: {state.provider_id}..."):
        run_gcloud([
            "iam", "workload-identity-pools", "providers", "create-oidc", state.provider_id,
            f"--project={state.project_id}",
            "--location=global",
            f"--workload-identity-pool={state.pool_id}",
            "--display-name=GitHub Actions OIDC",
            f"--issuer-uri={GITHUB_ISSUER_URI}",
            f"--attribute-mapping={GITHUB_ATTRIBUTE_MAPPING}",
            f"--attribute-condition=assertion.repository.startsWith('{state.github_org}/')",
        ], capture=False)

    console.print("[green]Provider created.[/green]")
    return state.provider_id, True


def ensure_service_account(state: DesiredState, dry_run: bool = False) -> tuple[str, bool]:
    """Create the service account GitHub Actions impersonates unless it exists."""
    console.print("\n[yellow]--- Step 11: Service Account ---[/yellow]")
    sa_email = state.service_account_email

    if exists(["iam", "service-accounts", "describe", sa_email, f"--project={state.project_id}"]):
        console.print(f"[green]Service account {sa_email} already exists. Skipping creation.[/green]")
        return sa_email, False

    if dry_run:
        console.print(f"[dim][DRY RUN] Would create service account: {state.service_account_name}[/dim]")
        return sa_email, True

    with _spinner(f"Creating service account: {state.service_account_name}..."):
        run_gcloud([
            "iam", "service-accounts", "create", state.service_account_name,
            f"--project={state.project_id}",
            "--display-name=GitHub Actions Service Account",
        ], capture=False)

    console.print("[green]Service account created.[/green]")
    return sa_email, True


def missing_resources(state: DesiredState) -> list[str]:
    """Names of the pool, provider or service account that cannot be described."""
    checks = {
        f"Workload Identity Pool {state.pool_id}": [
            "iam", "workload-identity-pools", "describe", state.pool_id,
            f"--project={state.project_id}", "--location=global",
        ],
        f"OIDC provider {state.provider_id}": [
            "iam", "workload-identity-pools", "providers", "describe", state.provider_id,
            "--location=global", f"--workload-identity-pool={state.pool_id}", f"--project={state.project_id}",
        ],
        f"Service account {state.service_account_email}": [
            "iam", "service-accounts", "describe", state.service_account_email, f"--project={state.project_id}",
        ],
    }
    return [name for name, args in checks.items() if not exists(args)]


def setup(
    state: DesiredState,
    *,
    dry_run: bool = False,
    assume_yes: bool = False,
    store: Optional[PolicyStore] = None,
) -> Optional[SetupOutcome]:
    """Provision every resource, then reconcile and verify the IAM bindings.

    Args:
        state: Desired state loaded from configuration
        dry_run: If True, show what would be done without making changes
        assume_yes: If True, skip the confirmation prompt
        store: Policy store to reconcile against (IAM APIs with ADC by default)

    Returns:
        A SetupOutcome describing created resources and reconciliation results,
        or None when the operator declined the confirmation prompt

    Raises:
        GCloudError: If any gcloud command fails or the project number cannot be resolved
        ResourceNotFoundError: If a reconciliation target is still missing
    """
    mode_text = " [DRY RUN]" if dry_run else ""
    console.print(
        Panel.fit(
            f"[bold cyan]GitHub <-> GCP Workload Identity Federation{mode_text}[/bold cyan]\n"
            f"Project: {state.project_id}\n"
            f"Organization (GitHub): {state.github_org}\n"
            f"Repositories: {', '.join(state.unique_repositories())}",
            border_style="cyan" if not dry_run else "yellow",
        )
    )

    if not assume_yes and not dry_run:
        if not inquirer.confirm(message="Proceed?", default=False).execute():
            console.print("Aborted.")
            return None

    account = check_authentication()
    billing_id = choose_billing_account(state.billing_account_id)
    org_id = choose_organization(state.org_id)
    outcome = SetupOutcome(state=state, billing_account_id=billing_id, org_id=org_id)

    _, created = ensure_project(state, org_id, dry_run=dry_run)
    if created:
        outcome.created.append(f"project {state.project_id}")
    link_billing_account(state.project_id, billing_id, dry_run=dry_run)
    enable_apis(state.project_id, dry_run=dry_run)

    if dry_run and created:
        console.print("[dim][DRY RUN] Project does not exist yet; skipping IAM plan.[/dim]")
        return outcome

    # The operator needs these roles to create the pool and edit policies below.
    console.print("\n[yellow]--- Step 7: Operator Permissions ---[/yellow]")
    reconciler = Reconciler(store or IamPolicyStore(), dry_run=dry_run, console=console)
    operator = operator_requests(state, account)
    outcome.results = reconciler.reconcile_all(operator)
    if any(r.write_count for r in outcome.results):
        console.print("[cyan]Waiting for permissions to propagate...[/cyan]")
        time.sleep(PROPAGATION_DELAY)

    console.print("\n[yellow]--- Step 8: Project Number ---[/yellow]")
    project_number = state.project_number or resolve_project_number(state.project_id)
    if not project_number:
        raise GCloudError(f"Could not resolve the project number of {state.project_id}.")
    state = replace(state, project_number=project_number)
    outcome.state = state
    console.print(f"[green]Project number:[/green] {project_number}")

    for step in (ensure_pool, ensure_provider, ensure_service_account):
        name, created = step(state, dry_run=dry_run)
        if created:
            outcome.created.append(name)

    if dry_run and outcome.created:
        console.print("[dim][DRY RUN] Resources are missing; skipping IAM plan.[/dim]")
        return outcome

    if outcome.created:
        console.print("[cyan]Waiting for new resources to propagate...[/cyan]")
        time.sleep(PROPAGATION_DELAY)

    console.print("\n[yellow]--- Step 12: IAM Bindings ---[/yellow]")
    bindings = expand(state)
    outcome.results.extend(reconciler.reconcile_all(bindings))
    requests = operator + bindings

    if dry_run:
        return outcome

    console.print("\n[yellow]--- Step 13: Validation ---[/yellow]")
    missing = missing_resources(state)
    if missing:
        raise GCloudError(f"Validation failed, missing: {', '.join(missing)}")
    console.print("[green]Pool, provider and service account verified.[/green]")
    outcome.report = verify(reconciler.store, requests, console=console)
    return outcome


__all__ = [
    "SetupOutcome",
    "check_authentication",
    "choose_billing_account",
    "choose_organization",
    "enable_apis",
    "ensure_pool",
    "ensure_project",
    "ensure_provider",
    "ensure_service_account",
    "link_billing_account",
    "missing_resources",
    "resolve_project_number",
    "setup",
]
