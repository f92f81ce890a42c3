"""
Tarball probing for source hosts.

Each prober knows how one host serves snapshot archives for a revision and
turns a repository URL into a TarballRepo: the archive URL, the directory to
strip on extraction and, where the host produces reproducible bytes, the
SHA-256 of the archive.
"""

import hashlib
import tarfile
import tempfile
import time
import zlib
from abc import ABC, abstractmethod
from typing import IO, Callable, List, Optional, Type

import httpx

from .cli_config import ArchiveConfig, NetworkConfig, get_config
from .error_handling import (
    ArchiveFormatError,
    FetchError,
    UnsupportedHostError,
    log_archive_error,
    log_network_error,
)
from .repository import TarballRepo
from .structured_logging import get_archive_logger

# Name Go's archive/tar (and git archive) give the pax global header entry
PAX_GLOBAL_HEADER = "pax_global_header"

ArchiveInspector = Callable[[IO[bytes]], str]


def inspect_top_level_directory(fileobj: IO[bytes]) -> str:
    """
    Return the directory name a gzip-compressed tarball wraps its content in.

    GitHub archives start with a pax global header (carrying the commit id)
    followed by the single top-level directory, so the second entry of the
    stream names the prefix. Its casing cannot be predicted from the import
    path, hence the inspection.

    Raises:
        ArchiveFormatError: If the data is not a gzip tarball or has fewer
            than two entries.
    """
    entries: List[str] = []
    try:
        with tarfile.open(fileobj=fileobj, mode="r:gz") as tar:
            while len(entries) < 2:
                member = tar.next()
                if member is None:
                    break
                # tarfile folds the global header into pax_headers instead of
                # yielding it as a member
                if not entries and tar.pax_headers:
                    entries.append(PAX_GLOBAL_HEADER)
                # tarfile also drops the trailing slash of directory names
                entries.append(member.name + "/" if member.isdir() else member.name)
    except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
        raise ArchiveFormatError(f"Cannot read archive: {e}") from e

    if len(entries) < 2:
        raise ArchiveFormatError(
            f"Archive has {len(entries)} entries, expected at least 2"
        )
    return entries[1]


def create_http_client(
    network_config: Optional[NetworkConfig] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Build the HTTP client shared by probers and the VCS root resolver."""
    network_config = network_config or get_config().network
    return httpx.Client(
        timeout=network_config.to_timeout(),
        headers={"User-Agent": network_config.user_agent},
        follow_redirects=network_config.follow_redirects,
        transport=transport,
    )


class BaseArchiveProber(ABC):
    """Base class for host-specific tarball probers."""

    url_prefix: str = ""

    def __init__(
        self,
        client: httpx.Client,
        archive_config: Optional[ArchiveConfig] = None,
    ):
        self.client = client
        self.archive_config = archive_config or get_config().archive

    @classmethod
    def supports(cls, url: str) -> bool:
        return bool(cls.url_prefix) and url.startswith(cls.url_prefix)

    @abstractmethod
    def probe(self, host_url: str, revision: str) -> TarballRepo:
        """Build a tarball descriptor for the repository at the revision."""

    @abstractmethod
    def get_host_type(self) -> str:
        """Get the host type identifier."""


class GitHubArchiveProber(BaseArchiveProber):
    """Downloads and inspects GitHub ``/archive/<rev>.tar.gz`` snapshots."""

    url_prefix = "https://github.com/"

    def __init__(
        self,
        client: httpx.Client,
        archive_config: Optional[ArchiveConfig] = None,
        inspector: ArchiveInspector = inspect_top_level_directory,
    ):
        super().__init__(client, archive_config)
        self.inspector = inspector

    def get_host_type(self) -> str:
        return "github"

    def archive_url(self, host_url: str, revision: str) -> str:
        return f"{host_url}/archive/{revision}.tar.gz"

    def probe(self, host_url: str, revision: str) -> TarballRepo:
        """
        Download the archive and derive its strip prefix and checksum.

        Args:
            host_url: Repository URL, e.g. https://github.com/pkg/errors
            revision: Commit id or tag to snapshot

        Returns:
            TarballRepo with url, strip_prefix and sha256 set

        Raises:
            FetchError: If the download fails, times out or is too large
            ArchiveFormatError: If the archive cannot be inspected
        """
        download_url = self.archive_url(host_url, revision)
        start_time = time.time()

        with tempfile.TemporaryFile(prefix="dep2bazel-") as buffer:
            sha256 = self._download(download_url, buffer)
            buffer.seek(0)
            try:
                strip_prefix = self.inspector(buffer)
            except ArchiveFormatError as e:
                log_archive_error(
                    "Archive could not be inspected",
                    "archive_probers",
                    "probe",
                    url=download_url,
                    exception=e,
                )
                raise

        get_archive_logger().debug(
            "tarball_probed",
            url=download_url,
            strip_prefix=strip_prefix,
            duration_ms=int((time.time() - start_time) * 1000),
        )
        return TarballRepo(url=download_url, strip_prefix=strip_prefix, sha256=sha256)

    def _download(self, url: str, buffer: IO[bytes]) -> str:
        """Stream ``url`` into ``buffer``; return the hex SHA-256 of the bytes."""
        digest = hashlib.sha256()
        max_size = self.archive_config.max_archive_size_bytes
        received = 0

        try:
            with self.client.stream("GET", url) as response:
                response.raise_for_status()
                for chunk in response.iter_bytes(self.archive_config.chunk_size):
                    received += len(chunk)
                    if received > max_size:
                        raise FetchError(
                            url, f"Archive exceeds {max_size} bytes"
                        )
                    digest.update(chunk)
                    buffer.write(chunk)
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            log_network_error(
                "Archive download returned an error status",
                "archive_probers",
                "_download",
                url=url,
                status_code=status_code,
                exception=e,
            )
            raise FetchError(url, f"HTTP {status_code}", status_code) from e
        except httpx.TimeoutException as e:
            log_network_error(
                "Archive download timed out",
                "archive_probers",
                "_download",
                url=url,
                exception=e,
            )
            raise FetchError(url, "Request timed out") from e
        except httpx.HTTPError as e:
            log_network_error(
                "Archive download failed",
                "archive_probers",
                "_download",
                url=url,
                exception=e,
            )
            raise FetchError(url, f"Request failed: {e}") from e
        except httpx.InvalidURL as e:
            log_network_error(
                "Archive URL is invalid",
                "archive_probers",
                "_download",
                url=url,
                exception=e,
            )
            raise FetchError(url, f"Invalid URL: {e}") from e

        return digest.hexdigest()


class GoogleSourceArchiveProber(BaseArchiveProber):
    """Builds go.googlesource.com ``/+archive/<rev>.tar.gz`` URLs without fetching."""

    url_prefix = "https://go.googlesource.com/"

    def get_host_type(self) -> str:
        return "googlesource"

    def probe(self, host_url: str, revision: str) -> TarballRepo:
        # Archives from go.googlesource.com produce a different checksum for
        # each download, and carry no top-level directory.
        return TarballRepo(
            url=f"{host_url}/+archive/{revision}.tar.gz",
            strip_prefix="",
            sha256="",
        )


ARCHIVE_PROBERS: List[Type[BaseArchiveProber]] = [
    GitHubArchiveProber,
    GoogleSourceArchiveProber,
]


def get_archive_prober(
    url: str,
    client: httpx.Client,
    archive_config: Optional[ArchiveConfig] = None,
) -> BaseArchiveProber:
    """
    Select the prober for a repository URL.

    Raises:
        UnsupportedHostError: If no prober handles the URL's host
    """
    for prober_class in ARCHIVE_PROBERS:
        if prober_class.supports(url):
            return prober_class(client, archive_config)
    raise UnsupportedHostError(url)


def probe_tarball(
    client: httpx.Client,
    host_url: str,
    revision: str,
    archive_config: Optional[ArchiveConfig] = None,
) -> TarballRepo:
    """Probe ``host_url`` at ``revision`` with the matching host strategy."""
    return get_archive_prober(host_url, client, archive_config).probe(host_url, revision)
