"""
Deterministic conversation state for the day-off request dialogue.

Why:
LLMs are probabilistic. HR workflows are not.
The slots of an in-progress request are carried by the caller between turns,
so everything here is a plain serializable value with no hidden state.
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Intent(str, Enum):
    """Closed set of intents the classifier may report."""

    REQUEST_DAY_OFF = "REQUEST_DAY_OFF"
    SUBMIT_COMPLAINT = "SUBMIT_COMPLAINT"
    REQUEST_REFERRAL = "REQUEST_REFERRAL"
    GENERAL_CONVERSATION = "GENERAL_CONVERSATION"
    UNKNOWN_INTENT = "UNKNOWN_INTENT"

    @classmethod
    def parse(cls, value) -> Intent:
        """
        Validate a raw classifier label.

        Anything outside the enumeration becomes UNKNOWN_INTENT.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN_INTENT

        label = value.strip().strip("\"'`.").upper().replace(" ", "_")
        try:
            return cls(label)
        except ValueError:
            return cls.UNKNOWN_INTENT


# Actionable intents allowed to interrupt an in-progress day-off request
INTERRUPTING_INTENTS = frozenset({Intent.SUBMIT_COMPLAINT, Intent.REQUEST_REFERRAL})


class DialogueStage(str, Enum):
    """Where a conversation stands after a turn."""

    NO_REQUEST = "NO_REQUEST"
    COLLECTING_DAYS = "COLLECTING_DAYS"
    COLLECTING_START_DATE = "COLLECTING_START_DATE"
    COLLECTING_REASON = "COLLECTING_REASON"
    COMPLETE = "COMPLETE"
    ABANDONED = "ABANDONED"


COLLECTING_STAGES = frozenset(
    {
        DialogueStage.COLLECTING_DAYS,
        DialogueStage.COLLECTING_START_DATE,
        DialogueStage.COLLECTING_REASON,
    }
)


class TopicSwitchPolicy(str, Enum):
    """
    What happens to an incomplete request when the user seems to change topic.

    CONTINUE: treat the utterance as part of the request.
    PRESERVE: answer it as conversation, keep the request for later.
    CLEAR: answer it as conversation, drop the request.
    """

    CONTINUE = "continue"
    PRESERVE = "preserve"
    CLEAR = "clear"


CANCELLATION_RESPONSE = "Okay, cancelling that request. Let me know if there's anything else."

CANCELLATION_PATTERN = re.compile(
    r"\b(never\s*mind|cancel|forget\s+(?:it|about\s+it|that)|scratch\s+that|"
    r"don'?t\s+bother|changed\s+my\s+mind|no\s+longer\s+need)\b",
    re.IGNORECASE,
)


def is_cancellation(utterance: str) -> bool:
    """True when the user asks to drop the request."""
    return bool(CANCELLATION_PATTERN.search(utterance or ""))


class DayOffRequestState(BaseModel):
    """Slots of a day-off request plus the utterance to show the user."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    days: str | None = Field(None, description="Number of days requested")
    start_date: str | None = Field(
        None, description="Leave start date, YYYY-MM-DD when known, otherwise as spoken"
    )
    reason: str | None = Field(None, description="Reason for the leave")
    is_complete: bool = Field(False, description="True once days, start date and reason are known")
    response_text: str = Field("", description="Prompt for the next missing slot or confirmation")

    @field_validator("days", "start_date", "reason", mode="before")
    @classmethod
    def _blank_is_missing(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.days:
            missing.append("days")
        if not self.start_date:
            missing.append("start_date")
        if not self.reason:
            missing.append("reason")
        return missing

    def has_all_slots(self) -> bool:
        return len(self.missing_fields()) == 0

    def has_collected_values(self) -> bool:
        return len(self.missing_fields()) < 3


def days_label(days: str) -> str:
    """Render a bare day count as '3 days' / '1 day'; keep anything else as given."""
    if days.isdigit():
        return f"{days} day" if int(days) == 1 else f"{days} days"
    return days


def render_response_text(state: DayOffRequestState) -> str:
    """Prompt for the first missing slot, or confirm the finished request."""
    if not state.days:
        return "Okay, you'd like to request some time off. How many days would you like to take?"

    days = days_label(state.days)
    if not state.start_date:
        return f"Got it, for {days}. And when would you like this leave to start?"
    if not state.reason:
        return f"Understood, {days} starting {state.start_date}. What's the reason for your time off?"
    return (
        f"Great! I've noted down your request for {days} starting on {state.start_date} "
        f"for {state.reason}. (This is a simulated action and has been logged for now.)"
    )


_STAGE_BY_MISSING = {
    "days": DialogueStage.COLLECTING_DAYS,
    "start_date": DialogueStage.COLLECTING_START_DATE,
    "reason": DialogueStage.COLLECTING_REASON,
}


def stage_for(state: DayOffRequestState | None) -> DialogueStage:
    """Stage implied by which slots are present."""
    if state is None:
        return DialogueStage.NO_REQUEST
    if state.is_complete:
        return DialogueStage.COMPLETE
    missing = state.missing_fields()
    if not missing:
        # all slots present but not flagged complete: still awaiting confirmation
        return DialogueStage.COLLECTING_REASON
    return _STAGE_BY_MISSING[missing[0]]


class TurnResult(BaseModel):
    """Everything one turn hands back to the transport layer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    agent_response: str
    recognized_intent: Intent
    day_off_request_details: DayOffRequestState | None = None
    stage: DialogueStage = DialogueStage.NO_REQUEST

    @property
    def carry_forward(self) -> DayOffRequestState | None:
        """State the caller must send back on the next turn, if any."""
        if self.stage in COLLECTING_STAGES:
            return self.day_off_request_details
        return None
