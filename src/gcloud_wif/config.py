"""Load the desired state from a YAML configuration file."""

from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from gcloud_wif.types import DEFAULT_PROJECT_ROLES, DEFAULT_SERVICE_ACCOUNT_ROLES, ConfigError, DesiredState
from gcloud_wif.types.principal import WILDCARD

DEFAULT_CONFIG_FILE = Path("wif.yaml")

_REQUIRED_KEYS = ("project_id", "github_org", "repositories")
_OPTIONAL_STRING_KEYS = (
    "pool_id",
    "provider_id",
    "service_account_name",
    "project_number",
    "project_name",
    "billing_account_id",
    "org_id",
)


def load_config(path: Path = DEFAULT_CONFIG_FILE, repositories: Optional[Iterable[str]] = None) -> DesiredState:
    """Read ``path`` and build a DesiredState.

    Args:
        path: YAML file to read.
        repositories: When given, replaces the file's ``repositories`` list.

    Returns:
        The validated desired state

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")

    if repositories is not None:
        data["repositories"] = list(repositories)

    return parse_config(data, source=str(path))


def parse_config(data: dict[str, Any], source: str = "<config>") -> DesiredState:
    """Validate a configuration mapping and build a DesiredState."""
    missing = [key for key in _REQUIRED_KEYS if not data.get(key)]
    if missing:
        raise ConfigError(f"{source} is missing required keys: {', '.join(missing)}")

    github_org = str(data["github_org"]).strip()
    if WILDCARD in github_org:
        raise ConfigError(f"{source}: github_org must not contain '{WILDCARD}'")

    options = {key: str(data[key]).strip() for key in _OPTIONAL_STRING_KEYS if data.get(key) is not None}

    return DesiredState(
        project_id=str(data["project_id"]).strip(),
        github_org=github_org,
        repositories=_repositories(data["repositories"], source),
        service_account_roles=_roles(data, "service_account_roles", DEFAULT_SERVICE_ACCOUNT_ROLES, source),
        project_roles=_roles(data, "project_roles", DEFAULT_PROJECT_ROLES, source),
        **options,
    )


def _repositories(value: Any, source: str) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigError(f"{source}: repositories must be a list of repository names")

    names = []
    for entry in value:
        name = str(entry).strip()
        if not name:
            raise ConfigError(f"{source}: repositories contains an empty name")
        if WILDCARD in name:
            # IAM stores '{org}/*' literally; it never matches a real repository.
            raise ConfigError(
                f"{source}: repository '{name}' contains '{WILDCARD}'. "
                "List every repository explicitly instead."
            )
        if "/" in name:
            raise ConfigError(f"{source}: repository '{name}' must not include the organization")
        names.append(name)
    return tuple(names)


def _roles(data: dict[str, Any], key: str, default: tuple[str, ...], source: str) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigError(f"{source}: {key} must be a list of roles")
    roles = tuple(str(role).strip() for role in value)
    bad = [role for role in roles if not role.startswith(("roles/", "projects/", "organizations/"))]
    if bad:
        raise ConfigError(f"{source}: {key} holds invalid role names: {', '.join(bad)}")
    return roles


__all__ = ["DEFAULT_CONFIG_FILE", "load_config", "parse_config"]
