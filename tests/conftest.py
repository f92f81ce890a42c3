"""
Shared fixtures for dep2bazel tests.
"""

import io
import os
import tarfile
from typing import Callable, Dict, Optional

import httpx
import pytest

from dep2bazel.cli_config import reset_config
from dep2bazel.error_handling import setup_error_handling

Handler = Callable[[httpx.Request], httpx.Response]


def make_tarball(
    top_dir: str = "errors-abc123",
    files: Optional[Dict[str, bytes]] = None,
    commit: Optional[str] = "abc123",
) -> bytes:
    """Build a gzip tarball laid out like a GitHub archive snapshot."""
    files = {"README.md": b"# errors\n", "errors.go": b"package errors\n"} if files is None else files
    kwargs = {"format": tarfile.PAX_FORMAT}
    if commit:
        kwargs["pax_headers"] = {"comment": commit}

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz", **kwargs) as tar:
        if top_dir:
            directory = tarfile.TarInfo(f"{top_dir}/")
            directory.type = tarfile.DIRTYPE
            directory.mode = 0o755
            tar.addfile(directory)
        for name, data in files.items():
            path = f"{top_dir}/{name}" if top_dir else name
            info = tarfile.TarInfo(path)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def go_import_page(prefix: str, vcs: str, repo: str) -> str:
    return (
        "<!DOCTYPE html><html><head>"
        f'<meta name="go-import" content="{prefix} {vcs} {repo}">'
        "</head><body>Nothing to see here.</body></html>"
    )


class FakeHosts:
    """Routes requests by URL to canned responses and records what was fetched."""

    def __init__(self):
        self.routes: Dict[str, Handler] = {}
        self.requests = []

    def add(self, url: str, handler: Handler) -> None:
        self.routes[url] = handler

    def add_bytes(self, url: str, content: bytes, status_code: int = 200) -> None:
        self.add(url, lambda request: httpx.Response(status_code, content=content))

    def add_html(self, url: str, text: str) -> None:
        self.add(url, lambda request: httpx.Response(200, text=text))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        handler = self.routes.get(str(request.url))
        if handler is None:
            return httpx.Response(404, text="Not Found")
        return handler(request)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self), follow_redirects=True)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep config files, environment and global state out of each test."""
    for key in list(os.environ):
        if key.startswith("DEP2BAZEL_"):
            monkeypatch.delenv(key)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    reset_config()
    setup_error_handling()
    yield
    reset_config()


@pytest.fixture
def temp_dir(tmp_path):
    workdir = tmp_path / "work"
    workdir.mkdir()
    return workdir


@pytest.fixture
def fake_hosts():
    return FakeHosts()


@pytest.fixture
def http_client(fake_hosts):
    with fake_hosts.client() as client:
        yield client


@pytest.fixture
def errors_tarball():
    return make_tarball()


@pytest.fixture
def sample_gopkg_lock(temp_dir):
    """A Gopkg.lock with a GitHub project and a vanity-path project."""
    content = '''# This file is autogenerated, do not edit; changes may be undone by the next 'dep ensure'.


[[projects]]
  name = "github.com/pkg/errors"
  packages = ["."]
  revision = "abc123"
  version = "v0.8.0"

[[projects]]
  branch = "master"
  name = "example.org/lib"
  packages = ["."]
  revision = "def456"

[solve-meta]
  analyzer-name = "dep"
  analyzer-version = 1
  inputs-digest = "0000"
  solver-name = "gps-cdcl"
  solver-version = 1
'''
    lockfile = temp_dir / "Gopkg.lock"
    lockfile.write_text(content)
    return lockfile
