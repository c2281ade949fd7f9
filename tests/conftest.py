"""Shared fixtures for polly-reader tests."""

import pytest

from fakes import FakeBackend, FakePlayer, FakeStore
from polly_reader.models import TextSegment


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def three_segments():
    """Segments A, B, C in submission order."""
    return [
        TextSegment(content="Alpha one.", sequence_index=0),
        TextSegment(content="Bravo two.", sequence_index=1),
        TextSegment(content="Charlie three.", sequence_index=2),
    ]
