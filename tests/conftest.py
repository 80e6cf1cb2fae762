"""Pytest configuration for boldqc tests."""

# The tests rely solely on the standard import mechanism and the package
# installation performed by the test environment.

import pytest

# Skip the entire suite when optional heavy dependencies are unavailable.
pytest.importorskip("pandas")
pytest.importorskip("nibabel")
