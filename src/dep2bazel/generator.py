"""
Build-file generation.

Turns dependency records into the body of a ``.bzl`` file declaring one
go_repository rule per dependency, in lockfile order. Dependencies whose
repository root cannot be found are reported and skipped.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import httpx

from .dependency import DependencyRecord
from .error_handling import VcsRootError, log_vcs_error
from .naming import bazel_name
from .resolver import RepositoryResolver
from .structured_logging import (
    log_dependency_resolved,
    log_generation_complete,
    log_generation_start,
)
from .vcs import RepoRoot, resolve_repo_root

HEADER = (
    "# This file is autogenerated with dep2bazel, do not edit.\n"
    'load("@io_bazel_rules_go//go:def.bzl", "go_repository")\n'
    "\n"
    "def go_deps():\n"
)

# A function body needs at least one statement
EMPTY_BODY = "    pass\n"

RootResolver = Callable[[str, httpx.Client], RepoRoot]


@dataclass(frozen=True)
class SkippedDependency:
    """A dependency left out of the generated file, with the reason."""

    dependency: DependencyRecord
    reason: str


@dataclass(frozen=True)
class GenerationResult:
    """Generated build file and per-dependency outcome."""

    content: str
    rendered: List[str] = field(default_factory=list)
    skipped: List[SkippedDependency] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def total_dependencies(self) -> int:
        return len(self.rendered) + len(self.skipped)

    @property
    def has_unresolved(self) -> bool:
        return bool(self.skipped)


def _strip_git_suffix(url: str) -> str:
    url = url.rstrip("/")
    return url[: -len(".git")] if url.endswith(".git") else url


class BuildFileGenerator:
    """Resolves dependency records and renders them as go_repository rules."""

    def __init__(
        self,
        client: httpx.Client,
        resolver: Optional[RepositoryResolver] = None,
        root_resolver: RootResolver = resolve_repo_root,
    ):
        self.client = client
        self.resolver = resolver or RepositoryResolver(client)
        self.root_resolver = root_resolver

    def repository_url(self, dependency: DependencyRecord) -> str:
        """
        Find the repository URL for a dependency.

        A declared source that is already a URL is used as-is; a declared
        source import path replaces the dependency's own path for lookup.

        Raises:
            VcsRootError: If the repository root cannot be discovered
        """
        if dependency.source_url and "://" in dependency.source_url:
            return _strip_git_suffix(dependency.source_url)
        lookup_path = dependency.source_url or dependency.import_path
        return self.root_resolver(lookup_path, self.client).repo

    def render_dependency(self, dependency: DependencyRecord) -> str:
        """Resolve one dependency and render its rule."""
        url = self.repository_url(dependency)
        descriptor = self.resolver.resolve(url, dependency.revision)
        log_dependency_resolved(
            dependency.import_path,
            descriptor.kind,
            getattr(descriptor, "url", None),
        )
        return descriptor.render(bazel_name(dependency.import_path), dependency.import_path)

    def generate(
        self, dependencies: List[DependencyRecord], source: str = "<memory>"
    ) -> GenerationResult:
        """
        Generate the build file for a list of dependencies.

        Args:
            dependencies: Dependency records in lockfile order
            source: Name of the lockfile, for logging

        Returns:
            GenerationResult with the file content and skipped dependencies
        """
        start_time = time.time()
        log_generation_start(source, len(dependencies))

        blocks: List[str] = []
        rendered: List[str] = []
        skipped: List[SkippedDependency] = []

        for dependency in dependencies:
            try:
                blocks.append(self.render_dependency(dependency))
            except VcsRootError as e:
                log_vcs_error(
                    f"Skipping {dependency.import_path}: {e}",
                    "generator",
                    "generate",
                    import_path=dependency.import_path,
                    exception=e,
                )
                skipped.append(SkippedDependency(dependency, str(e)))
                continue
            rendered.append(dependency.import_path)

        content = HEADER + ("".join(blocks) if blocks else EMPTY_BODY)
        duration_ms = int((time.time() - start_time) * 1000)
        log_generation_complete(duration_ms, len(rendered), len(skipped))

        return GenerationResult(
            content=content,
            rendered=rendered,
            skipped=skipped,
            duration_ms=duration_ms,
        )
