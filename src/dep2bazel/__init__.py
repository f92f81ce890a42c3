"""dep2bazel: generate Bazel go_repository rules from a dep Gopkg.lock."""

__version__ = "1.0.0"
