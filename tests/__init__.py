"""
DocMirror Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: DocumentClient against the in-memory remote store
"""
