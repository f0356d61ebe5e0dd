"""
Test support utilities for bulkcache tests.

Helpers that are not pytest fixtures but are shared across test files,
such as the in-memory Redis stand-in in ``fake_redis``.
"""
