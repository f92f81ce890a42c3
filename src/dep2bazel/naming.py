"""Rule naming for generated go_repository rules."""


def bazel_name(import_path: str) -> str:
    """
    Derive the Bazel repository name for a Go import path.

    The host labels are reversed and joined with the remaining path
    segments, e.g. ``github.com/scele/dep2bazel`` becomes
    ``com_github_scele_dep2bazel``.
    """
    parts = import_path.split("/")
    host_parts = parts[0].split(".")
    segments = list(reversed(host_parts)) + parts[1:]
    name = "_".join(segments)
    return name.replace("-", "_").replace(".", "_")
