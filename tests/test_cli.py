"""Tests for the command line interface that need no cloud access."""

from typer.testing import CliRunner

from gcloud_wif import __version__
from gcloud_wif.cli import app

runner = CliRunner()

CONFIG = """\
project_id: ci-project
project_number: "123456789012"
github_org: acme
repositories: [repo-a]
"""


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_workflow(tmp_path):
    config = tmp_path / "wif.yaml"
    config.write_text(CONFIG)

    result = runner.invoke(app, ["workflow", "--config", str(config)])

    assert result.exit_code == 0
    assert "github-ci@ci-project.iam.gserviceaccount.com" in result.output
    assert "google-github-actions/auth@v2" in result.output


def test_missing_config_exits_with_error(tmp_path):
    result = runner.invoke(app, ["verify", "--config", str(tmp_path / "absent.yaml")])

    assert result.exit_code == 1
    assert "not found" in result.output
