"""Packaging regression tests.

Tests that verify the installed package structure and behavior.
"""

from pathlib import Path


def test_source_layout():
    """The package lives under src/ with a namespace kernel and _internal."""
    here = Path(__file__).resolve().parent
    repo_root = here.parent
    src_qatrack = repo_root / "src" / "qatrack"
    src_kernel = src_qatrack / "kernel"

    assert src_qatrack.exists(), "qatrack package should exist in src/"
    assert src_kernel.exists(), "qatrack.kernel package should exist in src/"
    assert (src_qatrack / "_internal").exists(), "qatrack._internal should exist"
    assert (repo_root / "pyproject.toml").exists()


def test_import_boundary():
    import qatrack
    import qatrack.kernel  # noqa: F401

    # Check version: in dev mode it's "dev", in installed mode it's "0.1.0"
    assert qatrack.__version__ in ("0.1.0", "dev")


def test_console_script_entry_point():
    from qatrack.cli import main

    assert callable(main)
