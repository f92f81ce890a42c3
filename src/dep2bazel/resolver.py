"""
Repository resolution with layered fallback.

A dependency is fetched as a tarball from its remapped URL if possible, then
from its original URL, and otherwise from version control at the pinned
revision. Resolution never fails.
"""

from typing import Optional

import httpx

from .archive_probers import probe_tarball
from .cli_config import ArchiveConfig, get_config
from .error_handling import ProbeError
from .remapping import remap_url
from .repository import RepositoryDescriptor, TarballRepo, VcsRepo
from .structured_logging import log_probe_failure


class RepositoryResolver:
    """Resolves repository URLs and revisions into repository descriptors."""

    def __init__(
        self,
        client: httpx.Client,
        archive_config: Optional[ArchiveConfig] = None,
    ):
        self.client = client
        self.archive_config = archive_config or get_config().archive

    def try_tarball(self, url: str, revision: str) -> Optional[TarballRepo]:
        try:
            return probe_tarball(self.client, url, revision, self.archive_config)
        except ProbeError as e:
            log_probe_failure(url, revision, str(e))
            return None

    def resolve(self, source_url: str, revision: str) -> RepositoryDescriptor:
        """
        Resolve a repository URL at a revision.

        Args:
            source_url: Repository root URL, e.g. https://gopkg.in/yaml.v2
            revision: Pinned commit

        Returns:
            TarballRepo when a snapshot archive is available, else VcsRepo
        """
        remapped_url = remap_url(source_url)

        tarball = self.try_tarball(remapped_url, revision)
        if tarball is not None:
            return tarball

        # An unchanged URL has already been probed
        if remapped_url != source_url:
            tarball = self.try_tarball(source_url, revision)
            if tarball is not None:
                return tarball

        return VcsRepo(revision=revision)
