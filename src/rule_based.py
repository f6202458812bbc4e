"""
Deterministic collaborators used when no language model is configured.

They follow the same contracts as the model-backed ones, including the
slot-merge policy: values found in the new utterance win, previously
collected values are kept otherwise, and a cancellation clears everything.
"""

import logging
import re
from datetime import datetime

from dateutil import parser
from dateutil.parser import ParserError
from dateutil.relativedelta import relativedelta

from src.conversation_state import (
    CANCELLATION_RESPONSE,
    DayOffRequestState,
    Intent,
    is_cancellation,
    render_response_text,
)
from src.observability import trace_span

logger = logging.getLogger(__name__)


# Checked in order: actionable intents that may interrupt a request come first
INTENT_PATTERNS = [
    (
        Intent.SUBMIT_COMPLAINT,
        [
            r"\bcomplain",
            r"\b(problem|issue)s?\s+with\b",
            r"\b(unhappy|dissatisfied|frustrated|upset)\b",
            r"\bnot\s+happy\b",
            r"\bharass",
            r"\bunfair(ly)?\b",
            r"\breport\s+(my|a|the|someone|an)\b",
            r"\bشكوى",
        ],
    ),
    (
        Intent.REQUEST_REFERRAL,
        [
            r"\brefer(ral|rals|ring|red)?\b",
            r"\brecommend\s+(a|my)\s+(friend|candidate|colleague)\b",
            r"\bإحالة",
        ],
    ),
    (
        Intent.REQUEST_DAY_OFF,
        [
            r"\bdays?\s+off\b",
            r"\btime\s+off\b",
            r"\bvacation\b",
            r"\bleave\b",
            r"\bholiday",
            r"\bpto\b",
            r"\bsick\s+day",
            r"\boff\s+work\b",
            r"إجازة",
        ],
    ),
    (
        Intent.GENERAL_CONVERSATION,
        [
            r"^\s*(hi|hello|hey|greetings|good\s+(morning|afternoon|evening))\b",
            r"\b(thanks|thank\s+you)\b",
            r"\bhow\s+are\s+you\b",
            r"\b(what\s+can\s+you\s+do|who\s+are\s+you)\b",
            r"\?\s*$",
            r"مرحبا|السلام عليكم|شكرا",
        ],
    ),
]


class KeywordIntentClassifier:
    """Regex intent classifier. Anything unmatched is UNKNOWN_INTENT."""

    def __init__(self):
        self._compiled = [
            (intent, [re.compile(p, re.IGNORECASE) for p in patterns])
            for intent, patterns in INTENT_PATTERNS
        ]

    def classify_sync(self, utterance: str) -> Intent:
        for intent, patterns in self._compiled:
            if any(p.search(utterance) for p in patterns):
                return intent
        return Intent.UNKNOWN_INTENT

    async def classify(self, utterance: str) -> Intent:
        with trace_span("classify_intent", mode="rules"):
            return self.classify_sync(utterance)


NUMBER_WORDS = {
    "a couple of": 2,
    "couple of": 2,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "fourteen": 14,
    "fifteen": 15,
    "twenty": 20,
    "an": 1,
    "a": 1,
}

_NUMBER = r"\d+|" + "|".join(w.replace(" ", r"\s+") for w in NUMBER_WORDS)

DAYS_PATTERN = re.compile(rf"\b({_NUMBER})\s*-?\s*(days?|weeks?)\b", re.IGNORECASE)
BARE_NUMBER_PATTERN = re.compile(
    rf"^\s*(?:just\s+|about\s+|maybe\s+|only\s+)?({_NUMBER})\s*[.!]?\s*$", re.IGNORECASE
)

_WEEKDAY = r"monday|tuesday|wednesday|thursday|friday|saturday|sunday"
_MONTH = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|"
    r"sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)

ISO_DATE_PATTERN = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
CALENDAR_DATE_PATTERNS = [
    re.compile(rf"\b(?:{_MONTH})\.?\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?\b", re.IGNORECASE),
    re.compile(
        rf"\b\d{{1,2}}(?:st|nd|rd|th)?\s+(?:of\s+)?(?:{_MONTH})\b(?:,?\s+\d{{4}})?", re.IGNORECASE
    ),
]
RELATIVE_DATE_PATTERN = re.compile(
    rf"\b(the\s+day\s+after\s+tomorrow|today|tonight|tomorrow|"
    rf"(?:next|this|coming)\s+(?:{_WEEKDAY}|week|month|weekend)|"
    rf"(?:{_WEEKDAY}))\b",
    re.IGNORECASE,
)

REASON_PATTERN = re.compile(
    r"\b(?:for|because(?:\s+of)?|due\s+to|since|reason\s+(?:is|being))\s+(.+)$",
    re.IGNORECASE,
)
_LEADING_CONNECTOR = re.compile(
    r"^(?:it'?s\s+|it\s+is\s+|the\s+reason\s+is\s+|for\s+|because(?:\s+of)?\s+|due\s+to\s+|since\s+)",
    re.IGNORECASE,
)
# "can I ask for time off" names the request, not a reason
NOT_A_REASON_PATTERN = re.compile(
    r"^(?:some\s+|a\s+)?(?:time\s+off|days?\s+off|leave|off|a\s+break|it|that|me|now)$",
    re.IGNORECASE,
)
_TRAILING_CONNECTOR = re.compile(
    r"\s+(?:starting|start|from|beginning|on|off|please|and|of)\s*$", re.IGNORECASE
)


def _number_value(token: str) -> int:
    token = re.sub(r"\s+", " ", token.strip().lower())
    if token.isdigit():
        return int(token)
    return NUMBER_WORDS[token]


def find_days(text: str) -> tuple[str | None, tuple[int, int] | None]:
    """Day count mentioned in text, as a digit string, with its span."""
    match = DAYS_PATTERN.search(text)
    if not match:
        return None, None

    count = _number_value(match.group(1))
    if match.group(2).lower().startswith("week"):
        count *= 7
    if count <= 0:
        return None, None
    return str(count), match.span()


def _normalize_calendar_date(raw: str, today: datetime) -> str | None:
    """Resolve a spoken calendar date to YYYY-MM-DD, rolling past dates to next year."""
    cleaned = re.sub(r"\bof\b", " ", raw, flags=re.IGNORECASE)
    try:
        parsed = parser.parse(cleaned, default=today.replace(hour=0, minute=0, second=0, microsecond=0))
    except (ParserError, ValueError, OverflowError):
        return None

    has_year = re.search(r"\d{4}", raw) is not None
    if not has_year and parsed.date() < today.date():
        parsed += relativedelta(years=1)
    return parsed.strftime("%Y-%m-%d")


def find_start_date(
    text: str, today: datetime | None = None
) -> tuple[str | None, tuple[int, int] | None]:
    """
    Start date mentioned in text, with its span.

    Calendar dates are normalized to YYYY-MM-DD. Relative phrases such as
    "next Monday" are kept as the user said them.
    """
    today = today or datetime.now()

    match = ISO_DATE_PATTERN.search(text)
    if match:
        try:
            return parser.isoparse(match.group(0)).strftime("%Y-%m-%d"), match.span()
        except ValueError:
            logger.info(f"Ignoring invalid ISO date: {match.group(0)}")

    for pattern in CALENDAR_DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            normalized = _normalize_calendar_date(match.group(0), today)
            if normalized:
                return normalized, match.span()

    match = RELATIVE_DATE_PATTERN.search(text)
    if match:
        return match.group(0), match.span()

    return None, None


def _clean_reason(text: str) -> str | None:
    text = re.sub(r"\s+", " ", text).strip(" \t.,!?;:-")

    previous = None
    while previous != text:
        previous = text
        text = _LEADING_CONNECTOR.sub("", text)
        text = _TRAILING_CONNECTOR.sub("", text)
        text = text.strip(" \t.,!?;:-")

    return text or None


def find_reason(text: str) -> str | None:
    """Reason introduced by 'for', 'because', 'due to', ... in text."""
    match = REASON_PATTERN.search(text)
    if not match:
        return None

    reason = _clean_reason(match.group(1))
    if reason and NOT_A_REASON_PATTERN.match(reason):
        return None
    return reason


def _remove_spans(text: str, spans: list[tuple[int, int] | None]) -> str:
    for start, end in sorted((s for s in spans if s), reverse=True):
        text = text[:start] + " " + text[end:]
    return text


class RuleBasedSlotExtractor:
    """Regex slot filler for the day-off request."""

    def __init__(self, clock=datetime.now):
        self.clock = clock

    def extract_sync(
        self,
        utterance: str,
        prior_days: str | None = None,
        prior_start_date: str | None = None,
        prior_reason: str | None = None,
    ) -> DayOffRequestState:
        if is_cancellation(utterance):
            return DayOffRequestState(is_complete=False, response_text=CANCELLATION_RESPONSE)

        text = utterance.strip()

        days, days_span = find_days(text)
        start_date, date_span = find_start_date(text, today=self.clock())
        reason = find_reason(_remove_spans(text, [days_span, date_span]))

        if days is None and not prior_days:
            bare = BARE_NUMBER_PATTERN.match(text)
            if bare and _number_value(bare.group(1)) > 0:
                days = str(_number_value(bare.group(1)))

        merged_days = days or prior_days
        merged_start_date = start_date or prior_start_date
        merged_reason = reason or prior_reason

        only_reason_missing = merged_days and merged_start_date and not merged_reason
        if only_reason_missing and days is None and start_date is None:
            if is_small_talk(text):
                logger.info("Small talk while waiting for a reason; asking again")
            else:
                merged_reason = _clean_reason(text)

        state = DayOffRequestState(
            days=merged_days,
            start_date=merged_start_date,
            reason=merged_reason,
        )
        state.is_complete = state.has_all_slots()
        state.response_text = render_response_text(state)
        return state

    async def extract(
        self,
        utterance: str,
        prior_days: str | None = None,
        prior_start_date: str | None = None,
        prior_reason: str | None = None,
    ) -> DayOffRequestState:
        with trace_span("extract_day_off_slots", mode="rules"):
            return self.extract_sync(utterance, prior_days, prior_start_date, prior_reason)


CANNED_RESPONSES = [
    (
        re.compile(r"\b(thanks|thank\s+you)\b|شكرا", re.IGNORECASE),
        "You're welcome! Is there anything else I can help you with?",
    ),
    (
        re.compile(r"\bhow\s+are\s+you\b", re.IGNORECASE),
        "I'm doing well, thank you for asking! How can I help you today?",
    ),
    (
        re.compile(r"\b(what\s+can\s+you\s+do|who\s+are\s+you|help)\b", re.IGNORECASE),
        "I'm your HR voice assistant. I can help you request time off, "
        "submit a complaint, or make a referral.",
    ),
    (
        re.compile(
            r"^\s*(hi|hello|hey|greetings|good\s+(morning|afternoon|evening))\b|مرحبا|السلام عليكم",
            re.IGNORECASE,
        ),
        "Hello! I can help you request time off, submit a complaint, or make a referral. "
        "What would you like to do?",
    ),
]


_SMALL_TALK_CLASSIFIER = KeywordIntentClassifier()


def is_small_talk(utterance: str) -> bool:
    """Greetings, thanks and questions to the assistant, never a leave reason."""
    if _SMALL_TALK_CLASSIFIER.classify_sync(utterance) is Intent.GENERAL_CONVERSATION:
        return True
    return any(pattern.search(utterance) for pattern, _ in CANNED_RESPONSES)


class CannedResponder:
    """Fixed answers for greetings and small talk; None for anything else."""

    async def respond(self, utterance: str) -> str | None:
        with trace_span("general_response", mode="rules"):
            for pattern, response in CANNED_RESPONSES:
                if pattern.search(utterance):
                    return response
        return None


SUGGESTIONS_BY_INTENT = {
    Intent.REQUEST_DAY_OFF: ["Request a day off", "Choose a start date for your leave"],
    Intent.SUBMIT_COMPLAINT: ["Submit a complaint", "Describe the problem in detail"],
    Intent.REQUEST_REFERRAL: ["Make a referral", "Share the candidate's details"],
    Intent.GENERAL_CONVERSATION: ["Request a day off", "Submit a complaint", "Make a referral"],
    Intent.UNKNOWN_INTENT: [],
}


class KeywordActionSuggester:
    def __init__(self, classifier: KeywordIntentClassifier | None = None):
        self.classifier = classifier or KeywordIntentClassifier()

    async def suggest(self, transcription: str) -> list[str]:
        intent = self.classifier.classify_sync(transcription)
        return list(SUGGESTIONS_BY_INTENT[intent])
