"""
typegraph Test Suite.

This package contains:
- unit/: Unit tests for each compiler component, loader, config and store
- integration/: Full compile passes into a store, and the CLI
"""
