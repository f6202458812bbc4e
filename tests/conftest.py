"""
Pytest configuration and fixtures.
Shared collaborators, controllers and conversation states.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from src.collaborators import Collaborators
from src.conversation_state import Intent
from src.dialogue_controller import DialogueController
from src.rule_based import (
    CannedResponder,
    KeywordActionSuggester,
    KeywordIntentClassifier,
    RuleBasedSlotExtractor,
)
from tests.factories import FIXED_NOW, make_state


@pytest.fixture
def rule_collaborators():
    """Rule-based collaborators with a fixed clock."""
    return Collaborators(
        classifier=KeywordIntentClassifier(),
        extractor=RuleBasedSlotExtractor(clock=lambda: FIXED_NOW),
        responder=CannedResponder(),
        suggester=KeywordActionSuggester(),
        mode="rules",
    )


@pytest.fixture
def controller(rule_collaborators):
    """Controller wired to rule-based collaborators."""
    return DialogueController(rule_collaborators)


@pytest.fixture
def stub_collaborators():
    """Collaborators whose behaviour each test sets explicitly."""
    return Collaborators(
        classifier=Mock(classify=AsyncMock(return_value=Intent.GENERAL_CONVERSATION)),
        extractor=Mock(extract=AsyncMock(return_value=None)),
        responder=Mock(respond=AsyncMock(return_value="Hi there!")),
        suggester=Mock(suggest=AsyncMock(return_value=[])),
        mode="stub",
    )


@pytest.fixture
def incomplete_state():
    """A request with only the day count collected."""
    return make_state(days="3")


@pytest.fixture
def test_client(controller, monkeypatch):
    """FastAPI test client backed by the rule-based controller."""
    import src.dialogue_controller
    from src.main import app

    monkeypatch.setattr(src.dialogue_controller, "dialogue_controller", controller)
    with TestClient(app) as client:
        yield client
