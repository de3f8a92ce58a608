"""Tests for package structure and imports."""

import pytest


@pytest.mark.unit
def test_package_imports():
    """Package imports without errors."""
    import velox

    assert velox is not None


@pytest.mark.unit
def test_version_value():
    from velox import __version__

    assert __version__ == "0.1.0"


@pytest.mark.unit
def test_version_format():
    from velox import __version__

    parts = __version__.split(".")
    assert len(parts) == 3
    for part in parts:
        assert part.isdigit()


@pytest.mark.unit
def test_public_api():
    import velox

    for name in velox.__all__:
        assert hasattr(velox, name)
