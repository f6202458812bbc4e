"""
Tests for settings and collaborator selection.
"""

from src.callbacks import UnsafeInputError
from src.collaborators import build_collaborators
from src.config import Settings
from src.conversation_state import TopicSwitchPolicy
from src.dialogue_controller import DialogueController
from src.rule_based import KeywordIntentClassifier, RuleBasedSlotExtractor


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("OPENAI_API_KEY", "TOPIC_SWITCH_POLICY", "LITELLM_MODEL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.use_llm is False
        assert settings.litellm_model == "gpt-4o-mini"
        assert settings.topic_switch_policy is TopicSwitchPolicy.CONTINUE

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("TOPIC_SWITCH_POLICY", "preserve")
        monkeypatch.setenv("CIRCUIT_BREAKER_FAILURE_THRESHOLD", "2")

        settings = Settings(_env_file=None)

        assert settings.use_llm is True
        assert settings.topic_switch_policy is TopicSwitchPolicy.PRESERVE
        assert settings.circuit_breaker_failure_threshold == 2


class TestBuildCollaborators:
    def test_rule_based_without_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        collaborators = build_collaborators(Settings(_env_file=None))

        assert collaborators.mode == "rules"
        assert isinstance(collaborators.classifier, KeywordIntentClassifier)
        assert isinstance(collaborators.extractor, RuleBasedSlotExtractor)
        assert collaborators.get_circuit_breaker_states() == []

    def test_controller_uses_configured_policy(self, rule_collaborators):
        controller = DialogueController(rule_collaborators, topic_switch_policy=TopicSwitchPolicy.CLEAR)

        assert controller.topic_switch_policy is TopicSwitchPolicy.CLEAR
        assert controller.get_circuit_breaker_states() == []

    def test_llm_breaker_ignores_rejected_input(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        collaborators = build_collaborators(Settings(_env_file=None))

        assert collaborators.mode == "llm"
        (breaker,) = collaborators.circuit_breakers
        assert UnsafeInputError in breaker.excluded_exceptions
