"""
Tests for PEP 561 py.typed marker file.
"""

from pathlib import Path


def test_py_typed_marker_exists():
    """Test that py.typed marker file exists in the package for PEP 561 compliance."""
    package = Path(__file__).parent.parent / "src" / "asyncscope"
    py_typed_file = package / "py.typed"

    assert py_typed_file.exists(), f"py.typed marker file not found at {py_typed_file}."
    assert py_typed_file.is_file(), f"{py_typed_file} should be a file, not a directory"


def test_py_typed_marker_content():
    """Test that py.typed marker file is empty or marks a partial package."""
    py_typed_file = Path(__file__).parent.parent / "src" / "asyncscope" / "py.typed"

    content = py_typed_file.read_text()
    assert content in ("", "partial\n")
