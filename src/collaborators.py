"""
Contracts for the services the dialogue controller depends on.

Two families implement them: language-model backed (src.llm_collaborators)
and deterministic rule-based (src.rule_based). Which one runs is decided by
configuration.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from src.callbacks import UnsafeInputError
from src.circuit_breaker import CircuitBreaker
from src.config import Settings
from src.conversation_state import DayOffRequestState, Intent

logger = logging.getLogger(__name__)


class IntentClassifier(Protocol):
    async def classify(self, utterance: str) -> Intent | str | None: ...


class SlotExtractor(Protocol):
    async def extract(
        self,
        utterance: str,
        prior_days: str | None = None,
        prior_start_date: str | None = None,
        prior_reason: str | None = None,
    ) -> DayOffRequestState | None: ...


class GeneralResponder(Protocol):
    async def respond(self, utterance: str) -> str | None: ...


class ActionSuggester(Protocol):
    async def suggest(self, transcription: str) -> list[str]: ...


@dataclass
class Collaborators:
    """One implementation of each collaborator, plus what backs them."""

    classifier: IntentClassifier
    extractor: SlotExtractor
    responder: GeneralResponder
    suggester: ActionSuggester
    mode: str = "rules"
    circuit_breakers: list[CircuitBreaker] = field(default_factory=list)

    def get_circuit_breaker_states(self) -> list[dict]:
        return [cb.get_state() for cb in self.circuit_breakers]


def build_collaborators(settings: Settings) -> Collaborators:
    """
    Build the collaborator set for the given settings.

    Language-model collaborators need an API key; without one the
    rule-based implementations are used so the service still runs.
    """
    if not settings.use_llm:
        from src.rule_based import (
            CannedResponder,
            KeywordActionSuggester,
            KeywordIntentClassifier,
            RuleBasedSlotExtractor,
        )

        logger.warning("No LLM API key configured. Using rule-based collaborators")
        return Collaborators(
            classifier=KeywordIntentClassifier(),
            extractor=RuleBasedSlotExtractor(),
            responder=CannedResponder(),
            suggester=KeywordActionSuggester(),
            mode="rules",
        )

    from src.llm_collaborators import (
        LlmActionSuggester,
        LlmGeneralResponder,
        LlmIntentClassifier,
        LlmSlotExtractor,
    )
    from src.llm_gateway import LlmGateway

    breaker = CircuitBreaker(
        failure_threshold=settings.circuit_breaker_failure_threshold,
        timeout=settings.circuit_breaker_timeout,
        name="LlmCircuitBreaker",
        excluded_exceptions=(UnsafeInputError,),
    )
    gateway = LlmGateway(
        model_name=settings.litellm_model,
        api_key=settings.openai_api_key,
        timeout_seconds=settings.llm_timeout_seconds,
        circuit_breaker=breaker,
    )

    return Collaborators(
        classifier=LlmIntentClassifier(gateway),
        extractor=LlmSlotExtractor(gateway),
        responder=LlmGeneralResponder(gateway),
        suggester=LlmActionSuggester(gateway),
        mode="llm",
        circuit_breakers=[breaker],
    )
