"""
Repository root discovery for Go import paths.

Well-known hosts are matched statically; any other import path is resolved
through the ``<meta name="go-import">`` tag served at ``https://<path>?go-get=1``,
the same discovery protocol the go tool uses.
"""

import re
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import List, Optional, Tuple

import httpx

from .error_handling import VcsRootError, log_network_error
from .structured_logging import log_repo_root

SUPPORTED_VCS = ("git", "hg", "bzr", "svn", "fossil")


@dataclass(frozen=True)
class RepoRoot:
    """Where the repository containing an import path lives."""

    vcs: str
    repo: str
    root: str


@dataclass(frozen=True)
class _StaticHost:
    prefix: str
    pattern: "re.Pattern[str]"
    vcs: str
    scheme: str = "https"


_ELEM = r"[A-Za-z0-9_.\-]+"

STATIC_HOSTS: List[_StaticHost] = [
    _StaticHost(
        "github.com/",
        re.compile(rf"^(?P<root>github\.com/{_ELEM}/{_ELEM})(/{_ELEM})*$"),
        "git",
    ),
    _StaticHost(
        "bitbucket.org/",
        re.compile(rf"^(?P<root>bitbucket\.org/{_ELEM}/{_ELEM})(/{_ELEM})*$"),
        "git",
    ),
    _StaticHost(
        "hub.jazz.net/git/",
        re.compile(rf"^(?P<root>hub\.jazz\.net/git/[a-z0-9]+/{_ELEM})(/{_ELEM})*$"),
        "git",
    ),
    _StaticHost(
        "git.apache.org/",
        re.compile(r"^(?P<root>git\.apache\.org/[a-z0-9_.\-]+\.git)(/[A-Za-z0-9_.\-]+)*$"),
        "git",
    ),
    _StaticHost(
        "git.openstack.org/",
        re.compile(
            r"^(?P<root>git\.openstack\.org/[A-Za-z0-9_.\-]+/[A-Za-z0-9_.\-]+)(\.git)?(/[A-Za-z0-9_.\-]+)*$"
        ),
        "git",
    ),
]

# example.com/path/repo.git/sub -> https://example.com/path/repo
EXPLICIT_VCS_PATTERN = re.compile(
    r"^(?P<root>(?P<repo>([a-z0-9.\-]+\.)+[a-z0-9.\-]+(:[0-9]+)?(/~?[A-Za-z0-9_.\-]+)+?)"
    r"\.(?P<vcs>bzr|fossil|git|hg|svn))(/~?[A-Za-z0-9_.\-]+)*$"
)


class GoImportParser(HTMLParser):
    """Collects ``go-import`` meta tags from a go-get discovery page."""

    def __init__(self):
        super().__init__()
        self.imports: List[Tuple[str, str, str]] = []

    def handle_starttag(self, tag, attrs):
        if tag != "meta":
            return
        attrs_dict = dict(attrs)
        if attrs_dict.get("name") != "go-import":
            return
        parts = (attrs_dict.get("content") or "").split()
        if len(parts) == 3:
            prefix, vcs, repo = parts
            self.imports.append((prefix, vcs, repo))


def _validate_import_path(import_path: str) -> None:
    if not import_path:
        raise VcsRootError(import_path, "empty import path")
    if "\\" in import_path or ".." in import_path.split("/"):
        raise VcsRootError(import_path, "invalid import path")
    host = import_path.split("/", 1)[0]
    if "." not in host:
        raise VcsRootError(import_path, "import path does not begin with hostname")
    hostname, _, port = host.partition(":")
    if not hostname or (port and not port.isdigit()):
        raise VcsRootError(import_path, f"invalid host {host!r}")


def _match_static(import_path: str) -> Optional[RepoRoot]:
    for host in STATIC_HOSTS:
        if not import_path.startswith(host.prefix):
            continue
        match = host.pattern.match(import_path)
        if match is None:
            raise VcsRootError(import_path, f"invalid {host.prefix.rstrip('/')} import path")
        root = match.group("root")
        return RepoRoot(vcs=host.vcs, repo=f"{host.scheme}://{root}", root=root)

    match = EXPLICIT_VCS_PATTERN.match(import_path)
    if match:
        return RepoRoot(
            vcs=match.group("vcs"),
            repo=f"https://{match.group('repo')}",
            root=match.group("root"),
        )
    return None


def _select_go_import(
    import_path: str, imports: List[Tuple[str, str, str]]
) -> Optional[Tuple[str, str, str]]:
    # The longest prefix that covers the import path wins
    best: Optional[Tuple[str, str, str]] = None
    for prefix, vcs, repo in imports:
        if import_path == prefix or import_path.startswith(prefix + "/"):
            if best is None or len(prefix) > len(best[0]):
                best = (prefix, vcs, repo)
    return best


def _discover_dynamic(import_path: str, client: httpx.Client) -> RepoRoot:
    url = f"https://{import_path}?go-get=1"
    try:
        response = client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        log_network_error(
            "go-get discovery returned an error status",
            "vcs",
            "_discover_dynamic",
            url=url,
            status_code=e.response.status_code,
            exception=e,
        )
        raise VcsRootError(
            import_path, f"https fetch: HTTP {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        log_network_error(
            "go-get discovery failed", "vcs", "_discover_dynamic", url=url, exception=e
        )
        raise VcsRootError(import_path, f"https fetch: {e}") from e
    except httpx.InvalidURL as e:
        raise VcsRootError(import_path, f"invalid URL {url}: {e}") from e

    parser = GoImportParser()
    parser.feed(response.text)
    selected = _select_go_import(import_path, parser.imports)
    if selected is None:
        raise VcsRootError(import_path, f"parse {url}: no go-import meta tags")

    prefix, vcs, repo = selected
    if vcs == "mod":
        raise VcsRootError(import_path, "go-import meta tag points at a module proxy")
    if vcs not in SUPPORTED_VCS:
        raise VcsRootError(import_path, f"unknown version control system {vcs!r}")
    if "://" not in repo:
        raise VcsRootError(import_path, f"invalid repo root {repo!r}")
    return RepoRoot(vcs=vcs, repo=repo, root=prefix)


def resolve_repo_root(import_path: str, client: httpx.Client) -> RepoRoot:
    """
    Map a Go import path to the repository that contains it.

    Args:
        import_path: e.g. ``github.com/pkg/errors`` or ``golang.org/x/net``
        client: HTTP client used for go-get discovery

    Returns:
        RepoRoot for the import path

    Raises:
        VcsRootError: If the path is invalid or discovery fails
    """
    _validate_import_path(import_path)

    repo_root = _match_static(import_path)
    if repo_root is None:
        repo_root = _discover_dynamic(import_path, client)

    log_repo_root(import_path, repo_root.repo, repo_root.vcs)
    return repo_root
