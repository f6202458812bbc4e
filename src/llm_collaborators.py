"""
Language-model implementations of the dialogue collaborators.

The model generates language and extracts values only. Anything the
dialogue depends on for correctness (valid intent labels, the completeness
flag) is checked again in code.
"""

import logging

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.conversation_state import (
    CANCELLATION_RESPONSE,
    DayOffRequestState,
    is_cancellation,
    render_response_text,
)
from src.llm_gateway import LlmGateway
from src.observability import trace_span
from src.prompts import (
    ACTION_SUGGESTER_INSTRUCTION,
    DAY_OFF_EXTRACTOR_INSTRUCTION,
    GENERAL_RESPONDER_INSTRUCTION,
    INTENT_CLASSIFIER_INSTRUCTION,
    build_day_off_message,
)

logger = logging.getLogger(__name__)


class IntentOutput(BaseModel):
    # str rather than Intent: the label is validated by the controller
    intent: str = Field(..., description="The recognized intent from the user's input.")


class GeneralResponseOutput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    agent_response: str = Field(..., description="The conversational response.")


class SuggestedActionsOutput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    suggested_actions: list[str] = Field(
        default_factory=list, description="Suggested actions based on the transcribed text."
    )


class LlmIntentClassifier:
    task = "intent_classifier"

    def __init__(self, gateway: LlmGateway):
        self.gateway = gateway
        gateway.register_task(
            self.task,
            INTENT_CLASSIFIER_INSTRUCTION,
            IntentOutput,
            description="Classifies a user utterance into one of five intents",
        )

    async def classify(self, utterance: str) -> str | None:
        """Return the raw label chosen by the model."""
        with trace_span("classify_intent", mode="llm"):
            output = await self.gateway.generate(self.task, f'User input: "{utterance}"')
        return output.intent if output else None


class LlmSlotExtractor:
    """
    Merges the user's latest message into the day-off request slots.

    Merge precedence and cancellation handling live in the instruction;
    the completeness flag is recomputed here because the rest of the
    dialogue relies on it.
    """

    task = "day_off_extractor"

    def __init__(self, gateway: LlmGateway):
        self.gateway = gateway
        gateway.register_task(
            self.task,
            DAY_OFF_EXTRACTOR_INSTRUCTION,
            DayOffRequestState,
            description="Collects days, start date and reason for a time-off request",
        )

    async def extract(
        self,
        utterance: str,
        prior_days: str | None = None,
        prior_start_date: str | None = None,
        prior_reason: str | None = None,
    ) -> DayOffRequestState | None:
        message = build_day_off_message(utterance, prior_days, prior_start_date, prior_reason)

        with trace_span("extract_day_off_slots", mode="llm"):
            state = await self.gateway.generate(self.task, message)

        if state is None:
            return None
        return self._reconcile(state, utterance)

    def _reconcile(self, state: DayOffRequestState, utterance: str) -> DayOffRequestState:
        complete = state.has_all_slots()

        if state.is_complete != complete:
            logger.warning(
                f"Model reported isComplete={state.is_complete} with missing "
                f"slots {state.missing_fields()}; correcting"
            )
            state = state.model_copy(update={"is_complete": complete})
            return state.model_copy(update={"response_text": render_response_text(state)})

        if not state.response_text.strip():
            if not state.has_collected_values() and is_cancellation(utterance):
                text = CANCELLATION_RESPONSE
            else:
                text = render_response_text(state)
            return state.model_copy(update={"response_text": text})

        return state


class LlmGeneralResponder:
    task = "general_responder"

    def __init__(self, gateway: LlmGateway):
        self.gateway = gateway
        gateway.register_task(
            self.task,
            GENERAL_RESPONDER_INSTRUCTION,
            GeneralResponseOutput,
            description="Answers small talk and general questions",
        )

    async def respond(self, utterance: str) -> str | None:
        with trace_span("general_response", mode="llm"):
            output = await self.gateway.generate(self.task, f'The user has said: "{utterance}"')
        return output.agent_response if output else None


class LlmActionSuggester:
    task = "action_suggester"

    def __init__(self, gateway: LlmGateway):
        self.gateway = gateway
        gateway.register_task(
            self.task,
            ACTION_SUGGESTER_INSTRUCTION,
            SuggestedActionsOutput,
            description="Suggests follow-up actions for a transcription",
        )

    async def suggest(self, transcription: str) -> list[str]:
        with trace_span("suggest_actions", mode="llm"):
            output = await self.gateway.generate(
                self.task, f"Transcribed Text: {transcription}"
            )
        return list(output.suggested_actions) if output else []
