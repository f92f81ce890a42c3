"""
Resolved repository descriptors and their go_repository rendering.

A dependency resolves either to a checksummed tarball or to a pinned VCS
commit. Both variants render the same rule shape; field order and literal
formatting are stable so generated files diff cleanly.
"""

from dataclasses import dataclass
from typing import List, Union

PROTO_MODE_FIELD = '        build_file_proto_mode = "disable",\n'


def _rule(name: str, importpath: str, fields: List[str]) -> str:
    lines = [
        "\n",
        "    go_repository(\n",
        f'        name = "{name}",\n',
        f'        importpath = "{importpath}",\n',
    ]
    lines.extend(fields)
    lines.append(PROTO_MODE_FIELD)
    lines.append("    )\n")
    return "".join(lines)


@dataclass(frozen=True)
class TarballRepo:
    """A dependency fetched as an http archive."""

    url: str
    strip_prefix: str = ""
    sha256: str = ""

    @property
    def kind(self) -> str:
        return "tarball"

    def render(self, name: str, importpath: str) -> str:
        fields = [
            f'        urls = ["{self.url}"],\n',
            f'        strip_prefix = "{self.strip_prefix}",\n',
        ]
        if self.sha256:
            fields.append(f'        sha256 = "{self.sha256}",\n')
        return _rule(name, importpath, fields)


@dataclass(frozen=True)
class VcsRepo:
    """A dependency checked out from version control at a pinned commit."""

    revision: str

    @property
    def kind(self) -> str:
        return "vcs"

    def render(self, name: str, importpath: str) -> str:
        return _rule(name, importpath, [f'        commit = "{self.revision}",\n'])


RepositoryDescriptor = Union[TarballRepo, VcsRepo]
