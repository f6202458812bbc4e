"""
Dialogue controller: one user utterance in, one agent reply out.
"""

import logging

from src.collaborators import Collaborators, build_collaborators
from src.config import settings
from src.conversation_state import (
    INTERRUPTING_INTENTS,
    DayOffRequestState,
    DialogueStage,
    Intent,
    TopicSwitchPolicy,
    TurnResult,
    is_cancellation,
    stage_for,
)
from src.observability import log_action_triggered, trace_span

logger = logging.getLogger(__name__)


EXTRACTION_FAILED_RESPONSE = (
    "I'm having a little trouble processing that day-off request. Could you please try rephrasing?"
)
COMPLAINT_RESPONSE = (
    "I'm sorry to hear you have a complaint. I've logged it for review. (This is a simulated action)"
)
REFERRAL_RESPONSE = (
    "You're looking to make a referral? I've noted that down and someone will follow up. "
    "(This is a simulated action)"
)
FALLBACK_RESPONSE = "Sorry, I'm not sure how to respond to that."


class DialogueController:
    """
    Deterministic wrapper around probabilistic collaborators.

    Responsibilities:
    - classify each utterance and keep an unfinished day-off request going
    - dispatch to slot extraction, simulated actions or general conversation
    - turn every collaborator failure into a usable reply

    The controller holds no conversation state. The unfinished request is
    passed in by the caller and handed back in the TurnResult, so one
    instance can serve any number of conversations concurrently.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        topic_switch_policy: TopicSwitchPolicy = TopicSwitchPolicy.CONTINUE,
    ):
        logger.info(
            f"Initializing DialogueController (mode={collaborators.mode}, "
            f"topic_switch_policy={topic_switch_policy.value})"
        )
        self.collaborators = collaborators
        self.topic_switch_policy = topic_switch_policy

    async def handle_turn(
        self, utterance: str, prior_state: DayOffRequestState | None = None
    ) -> TurnResult:
        """
        Process one conversational turn.

        Args:
            utterance: What the user said or typed
            prior_state: Request details returned by the previous turn, if any

        Returns:
            TurnResult with the reply, the intent acted upon and the request
            details to carry into the next turn
        """
        # A finished request is never continued, even if the caller resends it
        carried = prior_state if prior_state is not None and not prior_state.is_complete else None

        with trace_span("dialogue_turn", continuing=carried is not None):
            classified = await self._classify(utterance)
            intent = self._resolve_intent(classified, carried)

            if intent is Intent.REQUEST_DAY_OFF:
                return await self._handle_day_off(utterance, carried)
            if intent is Intent.SUBMIT_COMPLAINT:
                return self._handle_action(intent, utterance, COMPLAINT_RESPONSE, carried)
            if intent is Intent.REQUEST_REFERRAL:
                return self._handle_action(intent, utterance, REFERRAL_RESPONSE, carried)
            return await self._handle_general(intent, utterance, carried)

    async def _classify(self, utterance: str) -> Intent:
        try:
            raw = await self.collaborators.classifier.classify(utterance)
        except Exception as e:
            logger.error(f"Intent classification failed: {str(e)}", exc_info=True)
            return Intent.UNKNOWN_INTENT

        intent = Intent.parse(raw)
        if intent is Intent.UNKNOWN_INTENT and raw not in (Intent.UNKNOWN_INTENT, "UNKNOWN_INTENT"):
            logger.warning(f"Classifier returned an invalid intent: {raw!r}. Using UNKNOWN_INTENT")
        return intent

    def _resolve_intent(self, classified: Intent, carried: DayOffRequestState | None) -> Intent:
        """Keep an unfinished request going unless a competing action interrupts it."""
        if carried is None or classified in INTERRUPTING_INTENTS:
            return classified

        if self.topic_switch_policy is TopicSwitchPolicy.CONTINUE:
            if classified is not Intent.REQUEST_DAY_OFF:
                logger.info(f"Continuing day-off request (classified as {classified.value})")
            return Intent.REQUEST_DAY_OFF

        return classified

    async def _handle_day_off(
        self, utterance: str, carried: DayOffRequestState | None
    ) -> TurnResult:
        try:
            state = await self.collaborators.extractor.extract(
                utterance,
                prior_days=carried.days if carried else None,
                prior_start_date=carried.start_date if carried else None,
                prior_reason=carried.reason if carried else None,
            )
        except Exception as e:
            logger.error(f"Day-off slot extraction failed: {str(e)}", exc_info=True)
            state = None

        if not isinstance(state, DayOffRequestState):
            if state is not None:
                logger.error(f"Slot extractor returned {type(state).__name__}, discarding")
            return TurnResult(
                agent_response=EXTRACTION_FAILED_RESPONSE,
                recognized_intent=Intent.REQUEST_DAY_OFF,
                day_off_request_details=None,
                stage=DialogueStage.NO_REQUEST,
            )

        if state.is_complete:
            stage = DialogueStage.COMPLETE
            log_action_triggered(
                Intent.REQUEST_DAY_OFF.value,
                days=state.days,
                start_date=state.start_date,
                reason=state.reason,
            )
        elif not state.has_collected_values() and is_cancellation(utterance):
            stage = DialogueStage.ABANDONED
            logger.info("Day-off request cancelled by user")
        else:
            stage = stage_for(state)

        return TurnResult(
            agent_response=state.response_text,
            recognized_intent=Intent.REQUEST_DAY_OFF,
            day_off_request_details=state,
            stage=stage,
        )

    def _handle_action(
        self,
        intent: Intent,
        utterance: str,
        response: str,
        carried: DayOffRequestState | None,
    ) -> TurnResult:
        log_action_triggered(intent.value, utterance=utterance)
        if carried is not None:
            logger.info(f"{intent.value} interrupted an unfinished day-off request; discarding it")

        return TurnResult(
            agent_response=response,
            recognized_intent=intent,
            day_off_request_details=None,
            stage=DialogueStage.ABANDONED if carried is not None else DialogueStage.NO_REQUEST,
        )

    async def _handle_general(
        self, intent: Intent, utterance: str, carried: DayOffRequestState | None
    ) -> TurnResult:
        try:
            response = await self.collaborators.responder.respond(utterance)
        except Exception as e:
            logger.error(f"General response failed: {str(e)}", exc_info=True)
            response = None

        if not response or not response.strip():
            response = FALLBACK_RESPONSE

        if carried is not None and self.topic_switch_policy is TopicSwitchPolicy.PRESERVE:
            return TurnResult(
                agent_response=response,
                recognized_intent=intent,
                day_off_request_details=carried,
                stage=stage_for(carried),
            )

        return TurnResult(
            agent_response=response,
            recognized_intent=intent,
            day_off_request_details=None,
            stage=DialogueStage.ABANDONED if carried is not None else DialogueStage.NO_REQUEST,
        )

    def get_circuit_breaker_states(self) -> list[dict]:
        return self.collaborators.get_circuit_breaker_states()


# Global controller instance
dialogue_controller = None


def get_controller() -> DialogueController:
    """Get or create global controller instance."""
    global dialogue_controller
    if dialogue_controller is None:
        dialogue_controller = DialogueController(
            build_collaborators(settings),
            topic_switch_policy=settings.topic_switch_policy,
        )
    return dialogue_controller
