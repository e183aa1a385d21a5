"""Command-line tooling for typegraph."""
