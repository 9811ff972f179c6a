"""
Root-level shared fixtures for all searchpool tests.

Module-specific fixtures live in their package's conftest.py.
"""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test data.

    Automatically cleaned up after test completion.
    """
    temp_path = Path(tempfile.mkdtemp(prefix="searchpool_test_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_web_hits() -> list[dict[str, Any]]:
    """Web provider hits in provider order."""
    return [
        {
            "title": "Fano plane - Wikipedia",
            "url": "https://en.wikipedia.org/wiki/Fano_plane",
            "snippet": "The Fano plane is the finite projective plane of order 2.",
            "rank": 0,
            "domain": "en.wikipedia.org",
            "date": None,
        },
        {
            "title": "Projective planes",
            "url": "https://math.example.edu/projective",
            "snippet": "Lecture notes on finite projective planes.",
            "rank": 1,
            "domain": "math.example.edu",
            "date": None,
        },
        {
            "title": None,
            "url": "https://blog.example.com/fano",
            "snippet": "Seven points, seven lines.",
            "rank": 2,
            "domain": "blog.example.com",
            "date": None,
        },
    ]


@pytest.fixture
def sample_documents() -> list[dict[str, Any]]:
    """Documents for seeding a vector index."""
    return [
        {
            "id": "doc-1",
            "content": "The Fano plane has seven points and seven lines.",
            "metadata": {"title": "Fano basics", "url": "https://docs.example.com/fano",
                         "category": "geometry"},
        },
        {
            "id": "doc-2",
            "content": "Hamming codes are closely related to the Fano plane.",
            "metadata": {"title": "Hamming codes", "url": "https://docs.example.com/hamming",
                         "category": "coding"},
        },
        {
            "id": "doc-3",
            "content": "Octonion multiplication can be encoded with the Fano plane.",
            "metadata": {"title": "Octonions", "category": "algebra"},
        },
    ]


@pytest.fixture
def write_file():
    """
    Factory for writing test files.

    Usage:
        path = write_file(temp_dir / "docs.json", [{"id": "a"}])
    """
    def _create(path: Path, content: str | dict | list) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, (dict, list)):
            path.write_text(json.dumps(content, indent=2))
        else:
            path.write_text(content)
        return path
    return _create
