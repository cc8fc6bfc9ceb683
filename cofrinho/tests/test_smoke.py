"""Smoke tests for basic module wiring."""

from __future__ import annotations


def test_imports() -> None:
    import cofrinho
    import cofrinho.application
    import cofrinho.cli.main
    import cofrinho.domain
    import cofrinho.runtime
    import cofrinho.runtime.server
    import cofrinho.storage

    assert cofrinho.__version__
    assert cofrinho.application is not None
    assert cofrinho.cli.main is not None
    assert cofrinho.domain is not None
    assert cofrinho.runtime is not None
    assert cofrinho.runtime.server.app is not None
    assert cofrinho.storage is not None
