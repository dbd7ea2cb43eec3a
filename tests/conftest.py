"""
Pytest configuration and shared fixtures for firestore-datasync tests.

This file imports fixtures from helper modules to make them available
across all test files.
"""

import sys
from pathlib import Path

# Ensure the tests directory is importable for helper modules
sys.path.insert(0, str(Path(__file__).parent))

from conftest_firestore import (
    # Fake implementations
    FakeFirestore,
    FakeSnapshot,
    make_change,
    # Pytest fixtures
    fake_firestore,
)

# Re-export fixtures so pytest can find them
__all__ = [
    "FakeFirestore",
    "FakeSnapshot",
    "make_change",
    "fake_firestore",
]
