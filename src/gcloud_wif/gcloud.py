"""Thin wrapper around the gcloud CLI."""

import json
import subprocess
from typing import Any, Optional

from rich.console import Console

from gcloud_wif.types import GCloudError

console = Console()

_verbose = False


def set_verbose(verbose: bool) -> None:
    """Echo every gcloud command before running it when ``verbose`` is true."""
    global _verbose
    _verbose = verbose


def run_gcloud(args: list[str], check: bool = True, capture: bool = True) -> Optional[str]:
    """Run a gcloud command and return output.

    Args:
        args: List of arguments to pass to gcloud
        check: If True, raise exception on non-zero exit code
        capture: If True, capture and return stdout

    Returns:
        Command stdout if capture=True, an empty string otherwise; None when the
        command fails with check=False

    Raises:
        GCloudError: If command fails and check=True, or gcloud is not installed
    """
    cmd = ["gcloud"] + args
    if _verbose:
        console.print(f"[dim]$ {' '.join(cmd)}[/dim]")
    try:
        result = subprocess.run(
            cmd,
            check=check,
            capture_output=capture,
            text=True,
        )
    except FileNotFoundError as e:
        raise GCloudError("The gcloud CLI was not found on PATH. Install the Google Cloud SDK first.") from e
    except subprocess.CalledProcessError as e:
        raise GCloudError(f"Command failed: {' '.join(cmd)}\n{e.stderr}") from e

    if result.returncode != 0:
        return None
    return result.stdout.strip() if capture else ""


def run_gcloud_json(args: list[str]) -> Any:
    """Run a gcloud command with ``--format=json`` and decode its output."""
    output = run_gcloud(args + ["--format=json"])
    if not output:
        return None
    return json.loads(output)


def exists(args: list[str]) -> bool:
    """True when a ``describe`` style command succeeds."""
    return run_gcloud(args + ["--quiet"], check=False) is not None


__all__ = ["exists", "run_gcloud", "run_gcloud_json", "set_verbose"]
