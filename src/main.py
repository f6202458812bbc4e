"""
FastAPI application serving the Voice Link assistant.
Provides REST API endpoints for conversation turns, speech and monitoring.
"""

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.config import settings
from src.conversation_state import DayOffRequestState, DialogueStage, Intent
from src.dialogue_controller import get_controller
from src.speech import EMPTY_AUDIO_URI, get_speech_synthesizer

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

EMPTY_INPUT_RESPONSE = "Please say something!"
TURN_ERROR_RESPONSE = "Sorry, I encountered an error trying to respond."
SUGGESTIONS_ERROR = "Error: Could not fetch suggestions."


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Pydantic models for API
class AgentTurnRequest(CamelModel):
    """Request model for the interactive agent endpoint."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "userInput": "starting next Monday",
                "previousDayOffRequestDetails": {
                    "days": "3",
                    "isComplete": False,
                    "responseText": (
                        "Got it, for 3 days. And when would you like this leave to start?"
                    ),
                },
            }
        }
    )

    user_input: str = Field(..., description="What the user said or typed")
    previous_day_off_request_details: DayOffRequestState | None = Field(
        None, description="Details returned by the previous turn while a request is unfinished"
    )


class AgentTurnResponse(CamelModel):
    """Response model for the interactive agent endpoint."""

    agent_response: str = Field(..., description="Agent's reply")
    recognized_intent: Intent | None = Field(None, description="Intent acted upon")
    day_off_request_details: DayOffRequestState | None = Field(
        None, description="Send back on the next turn while stage is a collecting stage"
    )
    stage: DialogueStage | None = Field(None, description="Dialogue stage after this turn")


class TextToSpeechRequest(CamelModel):
    text: str = Field(..., description="Text to speak")


class TextToSpeechResponse(CamelModel):
    audio_url: str = Field(..., description="Audio data URI, empty when nothing was produced")
    success: bool


class SuggestActionsRequest(CamelModel):
    transcription: str = Field(..., description="Transcribed user speech")


class SuggestActionsResponse(CamelModel):
    suggested_actions: list[str]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    environment: str
    collaborator_mode: str
    circuit_breakers: list[dict]


def _circuit_breaker_states() -> list[dict]:
    return get_controller().get_circuit_breaker_states() + [
        get_speech_synthesizer().get_circuit_breaker_state()
    ]


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    logger.info("Starting Voice Link Assistant API")
    logger.info(f"Environment: {settings.environment}")

    try:
        get_controller()
        logger.info("Dialogue controller initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize dialogue controller: {e}")

    yield

    # Shutdown
    logger.info("Shutting down Voice Link Assistant API")
    await get_speech_synthesizer().close()


# Create FastAPI app
app = FastAPI(
    title="Voice Link Assistant API",
    description="Voice-driven HR assistant: day-off requests, complaints and referrals",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API Endpoints


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {"message": "Voice Link Assistant API", "version": "1.0.0", "docs": "/docs"}


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    Returns service status, collaborator mode and circuit breaker states.
    """
    return HealthResponse(
        status="healthy",
        environment=settings.environment,
        collaborator_mode=get_controller().collaborators.mode,
        circuit_breakers=_circuit_breaker_states(),
    )


@app.post(
    "/ai/interactive-agent",
    response_model=AgentTurnResponse,
    response_model_exclude_none=True,
    tags=["Agent"],
)
async def interactive_agent(request: AgentTurnRequest):
    """
    Run one conversational turn.

    The server keeps no conversation state. While a day-off request is
    unfinished, send the returned `dayOffRequestDetails` back with the next
    utterance:

    Request 1:
    ```json
    {"userInput": "I want to take a vacation"}
    ```

    Response 1:
    ```json
    {
        "agentResponse": "Okay, you'd like to request some time off. How many days would you like to take?",
        "recognizedIntent": "REQUEST_DAY_OFF",
        "dayOffRequestDetails": {"isComplete": false, "responseText": "..."},
        "stage": "COLLECTING_DAYS"
    }
    ```

    Request 2:
    ```json
    {"userInput": "3 days", "previousDayOffRequestDetails": {"isComplete": false, "responseText": "..."}}
    ```

    Decide whether to send the details back from `stage`, not from
    `isComplete`. Send them only while `stage` is `COLLECTING_DAYS`,
    `COLLECTING_START_DATE` or `COLLECTING_REASON`. After a cancellation the
    response still carries the emptied details with `isComplete: false`, but
    `stage` is `ABANDONED`; resending them would pull the next utterance back
    into a day-off request.
    """
    if not request.user_input.strip():
        return AgentTurnResponse(agent_response=EMPTY_INPUT_RESPONSE)

    try:
        result = await get_controller().handle_turn(
            request.user_input, request.previous_day_off_request_details
        )
    except Exception as e:
        logger.error(f"Error in /ai/interactive-agent endpoint: {str(e)}", exc_info=True)
        return AgentTurnResponse(agent_response=TURN_ERROR_RESPONSE)

    return AgentTurnResponse(
        agent_response=result.agent_response,
        recognized_intent=result.recognized_intent,
        day_off_request_details=result.day_off_request_details,
        stage=result.stage,
    )


@app.post("/ai/text-to-speech", response_model=TextToSpeechResponse, tags=["Speech"])
async def text_to_speech(request: TextToSpeechRequest):
    """Convert an agent reply to speech."""
    audio_url = await get_speech_synthesizer().synthesize(request.text)
    return TextToSpeechResponse(
        audio_url=audio_url, success=bool(audio_url) and audio_url != EMPTY_AUDIO_URI
    )


@app.post("/ai/suggest-actions", response_model=SuggestActionsResponse, tags=["Agent"])
async def suggest_actions(request: SuggestActionsRequest):
    """Suggest follow-up actions for a transcription."""
    if not request.transcription.strip():
        return SuggestActionsResponse(suggested_actions=[])

    try:
        actions = await get_controller().collaborators.suggester.suggest(request.transcription)
    except Exception as e:
        logger.error(f"Error getting suggestions: {str(e)}", exc_info=True)
        actions = [SUGGESTIONS_ERROR]

    return SuggestActionsResponse(suggested_actions=actions)


@app.get("/ready")
def ready():
    return {"status": "ready"}


@app.get("/metrics", tags=["Monitoring"])
async def metrics():
    """
    Monitoring endpoint.

    Returns:
    - Circuit breaker states
    - Collaborator mode and topic switch policy
    - Environment
    """
    controller = get_controller()

    return {
        "circuit_breakers": _circuit_breaker_states(),
        "collaborator_mode": controller.collaborators.mode,
        "topic_switch_policy": controller.topic_switch_policy.value,
        "environment": settings.environment,
    }


if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8080)),
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
