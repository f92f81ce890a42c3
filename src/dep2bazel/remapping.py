"""
URL remapping to hosts with reliable tarball snapshots.

gopkg.in cannot serve tarballs and go.googlesource.com serves tarballs whose
bytes change between downloads, so both are rewritten to their GitHub
equivalents before probing.
"""

import re

GOPKG_IN_PREFIX = "https://gopkg.in/"
GOOGLESOURCE_PREFIX = "https://go.googlesource.com/"

_VERSION = r"(?:v0|v[1-9][0-9]*)(?:\.0|\.[1-9][0-9]*){0,2}(?:-unstable)?"

# /v2/name, /user/v2/name
GOPKG_IN_PATTERN_OLD = re.compile(
    r"^/(?:([a-z0-9][-a-z0-9]+)/)?"
    rf"({_VERSION})/"
    r"([a-zA-Z][-a-zA-Z0-9]*)(?:\.git)?"
    r"((?:/[a-zA-Z][-a-zA-Z0-9]*)*)$"
)

# /name.v2, /user/name.v2
GOPKG_IN_PATTERN_NEW = re.compile(
    r"^/(?:([a-zA-Z0-9][-a-zA-Z0-9]+)/)?"
    r"([a-zA-Z][-.a-zA-Z0-9]*)\."
    rf"({_VERSION})(?:\.git)?"
    r"((?:/[a-zA-Z0-9][-.a-zA-Z0-9]*)*)$"
)


def _remap_gopkg_in(url: str) -> str:
    tail = url[len(GOPKG_IN_PREFIX) - 1 :]

    match = GOPKG_IN_PATTERN_NEW.match(tail)
    if match:
        repo_user, repo_name, _version, _subpath = match.groups()
    else:
        match = GOPKG_IN_PATTERN_OLD.match(tail)
        if match is None:
            return url
        repo_user, _version, repo_name, _subpath = match.groups()

    if repo_user:
        return f"https://github.com/{repo_user}/{repo_name}"
    return f"https://github.com/go-{repo_name}/{repo_name}"


def remap_url(url: str) -> str:
    """
    Rewrite a repository URL to an equivalent GitHub URL when one is known.

    Returns the input unchanged when no rule applies.
    """
    if url.startswith(GOPKG_IN_PREFIX):
        return _remap_gopkg_in(url)
    elif url.startswith(GOOGLESOURCE_PREFIX):
        repo_name = url.rsplit("/", 1)[-1]
        return f"https://github.com/golang/{repo_name}"
    return url
