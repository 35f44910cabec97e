#!/usr/bin/env python3
"""Example script demonstrating library use of the reconciler.

This script plans (dry run) the IAM binding changes for the repositories in a
configuration file, then prints any drift the live policies currently show.

Usage:
    python example_reconcile.py wif.yaml

Note: This requires Application Default Credentials with permission to read the
project and service account IAM policies.
"""

import sys
from dataclasses import replace
from pathlib import Path

from gcloud_wif import IamPolicyStore, Outcome, Reconciler, expand, load_config, verify
from gcloud_wif.provision import resolve_project_number


def main():
    """Print the planned changes and the current drift."""
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("wif.yaml")
    state = load_config(path)
    if not state.project_number:
        state = replace(state, project_number=resolve_project_number(state.project_id))

    requests = expand(state)
    store = IamPolicyStore()

    print(f"{'='*70}")
    print(f"Plan for {state.project_id} ({len(state.unique_repositories())} repositories)")
    print('='*70)

    for result in Reconciler(store, dry_run=True).reconcile_all(requests):
        print(f"\n  {result.role} on {result.resource}")
        for item in result.outcomes:
            marker = {Outcome.PLANNED_ADD: "+", Outcome.PLANNED_REMOVE: "-"}.get(item.outcome, " ")
            print(f"    {marker} {item.principal}")

    report = verify(store, requests)
    print()
    if report.converged:
        print("✅ Every desired binding is present.")
    else:
        print(f"⚠️  {len(report.missing)} binding(s) missing.")
    for drift in report.unexpected:
        print(f"  still bound: {drift.principal} ({drift.role})")


if __name__ == "__main__":
    main()
