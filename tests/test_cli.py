"""
CLI interface tests for dep2bazel.
Tests argument handling, exit statuses and output destinations.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import make_tarball
from dep2bazel.error_handling import get_error_handler
from dep2bazel.generator import HEADER
from dep2bazel.main import cli

ERRORS_ARCHIVE = "https://github.com/pkg/errors/archive/abc123.tar.gz"


@pytest.fixture
def patched_client(fake_hosts):
    with patch(
        "dep2bazel.main.create_http_client",
        side_effect=lambda network_config: fake_hosts.client(),
    ) as factory:
        yield factory


def write_lockfile(directory, projects):
    blocks = []
    for project in projects:
        lines = ["[[projects]]"]
        for key, value in project.items():
            lines.append(f'  {key} = "{value}"')
        blocks.append("\n".join(lines))
    lockfile = directory / "Gopkg.lock"
    lockfile.write_text("\n\n".join(blocks) + "\n")
    return lockfile


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Gopkg.lock" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_sample_config(self):
        result = CliRunner().invoke(cli, ["--sample-config"])

        assert result.exit_code == 0
        assert json.loads(result.output)["network"]["read_timeout"] == 60.0

    def test_missing_argument(self):
        result = CliRunner().invoke(cli, [])

        assert result.exit_code != 0
        assert "usage: dep2bazel path/to/Gopkg.lock" in result.output

    def test_blank_argument(self):
        result = CliRunner().invoke(cli, ["   "])

        assert result.exit_code != 0
        assert "usage: dep2bazel" in result.output


class TestInputErrors:
    """Test fatal lockfile errors."""

    def test_nonexistent_lockfile(self, patched_client):
        result = CliRunner().invoke(cli, ["-q", "missing/Gopkg.lock"])

        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_invalid_toml(self, temp_dir, patched_client):
        lockfile = temp_dir / "Gopkg.lock"
        lockfile.write_text("[[projects]\nname = ")

        result = CliRunner().invoke(cli, ["-q", str(lockfile)])

        assert result.exit_code == 1
        assert "failed to parse" in result.output

    def test_project_without_revision(self, temp_dir, patched_client):
        lockfile = write_lockfile(temp_dir, [{"name": "github.com/pkg/errors"}])

        result = CliRunner().invoke(cli, ["-q", str(lockfile)])

        assert result.exit_code == 1
        assert "missing 'revision'" in result.output


class TestGenerateCommand:
    """Test build-file generation through the CLI."""

    def test_writes_build_file_to_stdout(self, temp_dir, fake_hosts, patched_client):
        fake_hosts.add_bytes(ERRORS_ARCHIVE, make_tarball())
        lockfile = write_lockfile(
            temp_dir, [{"name": "github.com/pkg/errors", "revision": "abc123"}]
        )

        result = CliRunner().invoke(cli, ["-q", str(lockfile)])

        assert result.exit_code == 0
        assert result.output.startswith(HEADER)
        assert 'name = "com_github_pkg_errors"' in result.output
        assert f'urls = ["{ERRORS_ARCHIVE}"]' in result.output

    def test_writes_build_file_to_output(self, temp_dir, fake_hosts, patched_client):
        lockfile = write_lockfile(
            temp_dir, [{"name": "github.com/pkg/errors", "revision": "abc123"}]
        )
        output = temp_dir / "go_deps.bzl"

        result = CliRunner().invoke(cli, [str(lockfile), "--output", str(output)])

        assert result.exit_code == 0
        content = output.read_text()
        assert content.startswith(HEADER)
        assert 'commit = "abc123"' in content
        assert "Wrote 1 rules" in result.output

    def test_unresolved_dependency_is_skipped(self, temp_dir, patched_client):
        lockfile = write_lockfile(
            temp_dir,
            [
                {"name": "nohost/pkg", "revision": "111"},
                {"name": "github.com/pkg/errors", "revision": "abc123"},
            ],
        )

        result = CliRunner().invoke(cli, [str(lockfile)])

        assert result.exit_code == 0
        assert "com_github_pkg_errors" in result.output
        assert "nohost_pkg" not in result.output
        assert "1 of 2 dependencies could not be resolved" in result.output

    def test_fail_on_unresolved(self, temp_dir, patched_client):
        lockfile = write_lockfile(temp_dir, [{"name": "nohost/pkg", "revision": "111"}])

        result = CliRunner().invoke(cli, ["-q", "--fail-on-unresolved", str(lockfile)])

        assert result.exit_code == 1
        assert "    pass\n" in result.output

    def test_fail_on_unresolved_from_environment(self, temp_dir, patched_client, monkeypatch):
        monkeypatch.setenv("DEP2BAZEL_FAIL_ON_UNRESOLVED", "true")
        lockfile = write_lockfile(temp_dir, [{"name": "nohost/pkg", "revision": "111"}])

        result = CliRunner().invoke(cli, ["-q", str(lockfile)])

        assert result.exit_code == 1

    def test_invalid_timeout(self, temp_dir, patched_client):
        lockfile = write_lockfile(
            temp_dir, [{"name": "github.com/pkg/errors", "revision": "abc123"}]
        )

        result = CliRunner().invoke(cli, ["--timeout", "0", str(lockfile)])

        assert result.exit_code != 0
        assert "must be positive" in result.output

    def test_config_file_timeout(self, temp_dir, patched_client):
        config_file = temp_dir / "dep2bazel.json"
        config_file.write_text(json.dumps({"network": {"read_timeout": 7.5}}))
        lockfile = write_lockfile(
            temp_dir, [{"name": "github.com/pkg/errors", "revision": "abc123"}]
        )

        with patch("dep2bazel.main.generate_build_file") as generate:
            generate.return_value.content = HEADER
            generate.return_value.has_unresolved = False
            result = CliRunner().invoke(
                cli, ["-q", "--config", str(config_file), str(lockfile)]
            )

        assert result.exit_code == 0
        config = generate.call_args[0][2]
        assert config.network.read_timeout == 7.5

    def test_verbose_reports_error_stats(self, temp_dir, patched_client):
        lockfile = write_lockfile(temp_dir, [{"name": "nohost/pkg", "revision": "111"}])

        result = CliRunner().invoke(cli, ["-v", str(lockfile)])

        assert result.exit_code == 0
        assert "Recovered errors: VCS_WARNING=1" in result.output

    def test_unwritable_output(self, temp_dir, patched_client):
        lockfile = write_lockfile(temp_dir, [{"name": "nohost/pkg", "revision": "111"}])
        output = temp_dir / "missing" / "go_deps.bzl"

        result = CliRunner().invoke(cli, ["-q", str(lockfile), "-o", str(output)])

        assert result.exit_code == 1
        assert "Cannot write" in result.output
        assert get_error_handler().get_error_stats()["FILESYSTEM_ERROR"] == 1
