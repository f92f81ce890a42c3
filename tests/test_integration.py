"""
End-to-end generation tests: lockfile in, go_deps() file out, with every
host served by the fake transport.
"""

import hashlib

from conftest import go_import_page, make_tarball
from dep2bazel.dependency import DependencyRecord
from dep2bazel.generator import EMPTY_BODY, HEADER, BuildFileGenerator
from dep2bazel.main import generate_build_file
from dep2bazel.vcs import RepoRoot

ERRORS_ARCHIVE = "https://github.com/pkg/errors/archive/abc123.tar.gz"


class TestGenerateBuildFile:
    """Test generation from a Gopkg.lock file."""

    def test_github_and_vanity_dependencies(
        self, sample_gopkg_lock, fake_hosts, http_client, errors_tarball
    ):
        fake_hosts.add_bytes(ERRORS_ARCHIVE, errors_tarball)
        fake_hosts.add_html(
            "https://example.org/lib?go-get=1",
            go_import_page("example.org/lib", "git", "https://example.org/lib.git"),
        )

        result = generate_build_file(str(sample_gopkg_lock), http_client)

        expected = (
            HEADER
            + "\n"
            "    go_repository(\n"
            '        name = "com_github_pkg_errors",\n'
            '        importpath = "github.com/pkg/errors",\n'
            f'        urls = ["{ERRORS_ARCHIVE}"],\n'
            '        strip_prefix = "errors-abc123/",\n'
            f'        sha256 = "{hashlib.sha256(errors_tarball).hexdigest()}",\n'
            '        build_file_proto_mode = "disable",\n'
            "    )\n"
            "\n"
            "    go_repository(\n"
            '        name = "org_example_lib",\n'
            '        importpath = "example.org/lib",\n'
            '        commit = "def456",\n'
            '        build_file_proto_mode = "disable",\n'
            "    )\n"
        )
        assert result.content == expected
        assert result.rendered == ["github.com/pkg/errors", "example.org/lib"]
        assert not result.has_unresolved

    def test_empty_lockfile(self, temp_dir, http_client):
        lockfile = temp_dir / "Gopkg.lock"
        lockfile.write_text('[solve-meta]\n  analyzer-name = "dep"\n')

        result = generate_build_file(str(lockfile), http_client)

        assert result.content == HEADER + EMPTY_BODY
        assert result.total_dependencies == 0

    def test_declared_source_url(self, temp_dir, fake_hosts, http_client):
        lockfile = temp_dir / "Gopkg.lock"
        lockfile.write_text(
            "[[projects]]\n"
            '  name = "example.org/lib"\n'
            '  source = "https://github.com/fork/lib.git"\n'
            '  revision = "def456"\n'
        )
        archive = "https://github.com/fork/lib/archive/def456.tar.gz"
        fake_hosts.add_bytes(archive, make_tarball(top_dir="lib-def456", commit="def456"))

        result = generate_build_file(str(lockfile), http_client)

        assert 'name = "org_example_lib"' in result.content
        assert 'importpath = "example.org/lib"' in result.content
        assert f'urls = ["{archive}"]' in result.content
        assert 'strip_prefix = "lib-def456/"' in result.content
        assert not any("go-get=1" in url for url in fake_hosts.requests)


class TestBuildFileGenerator:
    """Test generation from dependency records."""

    def test_gopkg_in_is_fetched_from_github(self, fake_hosts, http_client):
        fake_hosts.add_html(
            "https://gopkg.in/yaml.v2?go-get=1",
            go_import_page("gopkg.in/yaml.v2", "git", "https://gopkg.in/yaml.v2"),
        )
        archive = "https://github.com/go-yaml/yaml/archive/5420a8b.tar.gz"
        fake_hosts.add_bytes(archive, make_tarball(top_dir="yaml-5420a8b", commit="5420a8b"))

        result = BuildFileGenerator(http_client).generate(
            [DependencyRecord("gopkg.in/yaml.v2", "5420a8b")]
        )

        assert 'name = "in_gopkg_yaml_v2"' in result.content
        assert f'urls = ["{archive}"]' in result.content
        assert 'strip_prefix = "yaml-5420a8b/"' in result.content

    def test_golang_org_falls_back_to_googlesource(self, fake_hosts, http_client):
        fake_hosts.add_html(
            "https://golang.org/x/net?go-get=1",
            go_import_page("golang.org/x/net", "git", "https://go.googlesource.com/net"),
        )

        result = BuildFileGenerator(http_client).generate(
            [DependencyRecord("golang.org/x/net", "a6577fa")]
        )

        assert 'name = "org_golang_x_net"' in result.content
        assert 'urls = ["https://go.googlesource.com/net/+archive/a6577fa.tar.gz"]' in result.content
        assert 'strip_prefix = ""' in result.content
        assert "sha256" not in result.content
        assert "https://github.com/golang/net/archive/a6577fa.tar.gz" in fake_hosts.requests

    def test_unresolvable_dependency_is_skipped(self, fake_hosts, http_client):
        fake_hosts.add_bytes(ERRORS_ARCHIVE, make_tarball())

        result = BuildFileGenerator(http_client).generate(
            [
                DependencyRecord("unknown.example/missing", "111"),
                DependencyRecord("github.com/pkg/errors", "abc123"),
            ]
        )

        assert result.rendered == ["github.com/pkg/errors"]
        assert len(result.skipped) == 1
        assert result.skipped[0].dependency.import_path == "unknown.example/missing"
        assert "HTTP 404" in result.skipped[0].reason
        assert "unknown_example" not in result.content
        assert result.content.count("go_repository(") == 1

    def test_all_dependencies_skipped(self, http_client):
        result = BuildFileGenerator(http_client).generate(
            [DependencyRecord("nohost/pkg", "111")]
        )

        assert result.content == HEADER + EMPTY_BODY
        assert result.has_unresolved

    def test_subpackage_resolves_to_repository_root(self, fake_hosts, http_client):
        fake_hosts.add_bytes(ERRORS_ARCHIVE, make_tarball())

        result = BuildFileGenerator(http_client).generate(
            [DependencyRecord("github.com/pkg/errors/internal", "abc123")]
        )

        assert 'importpath = "github.com/pkg/errors/internal"' in result.content
        assert f'urls = ["{ERRORS_ARCHIVE}"]' in result.content

    def test_custom_root_resolver(self, http_client):
        seen = []

        def root_resolver(import_path, client):
            seen.append(import_path)
            return RepoRoot(vcs="hg", repo="https://hg.example.org/lib", root=import_path)

        result = BuildFileGenerator(http_client, root_resolver=root_resolver).generate(
            [DependencyRecord("example.org/lib", "def456", source_url="mirror.example.org/lib")]
        )

        assert seen == ["mirror.example.org/lib"]
        assert 'commit = "def456"' in result.content

    def test_rules_follow_lockfile_order(self, http_client):
        result = BuildFileGenerator(http_client).generate(
            [
                DependencyRecord("github.com/b/second", "2"),
                DependencyRecord("github.com/a/first", "1"),
            ]
        )

        assert result.content.index("com_github_b_second") < result.content.index(
            "com_github_a_first"
        )

    def test_invalid_host_is_skipped(self, fake_hosts, http_client):
        fake_hosts.add_bytes(ERRORS_ARCHIVE, make_tarball())

        result = BuildFileGenerator(http_client).generate(
            [
                DependencyRecord("example.com:notaport/lib", "abc"),
                DependencyRecord("github.com/pkg/errors", "abc123"),
            ]
        )

        assert result.rendered == ["github.com/pkg/errors"]
        assert [s.dependency.import_path for s in result.skipped] == ["example.com:notaport/lib"]
        assert "invalid host" in result.skipped[0].reason

    def test_unparseable_source_url_falls_back_to_commit(self, fake_hosts, http_client):
        result = BuildFileGenerator(http_client).generate(
            [DependencyRecord("example.org/lib", "abc\x01", source_url="https://github.com/fork/lib")]
        )

        assert result.rendered == ["example.org/lib"]
        assert 'commit = "abc\x01"' in result.content
        assert "urls" not in result.content
