"""Fixtures for workflow unit tests."""

import pytest

from workflow_fakes import Collaborators, RecordingSink


@pytest.fixture
def collaborators() -> Collaborators:
    return Collaborators()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
