"""
Single entry point for language-model calls, built on Google ADK.

Each collaborator task (intent classification, slot extraction, ...) is an
ADK agent with a fixed instruction and a pydantic output schema. A call runs
in a throwaway session, so nothing about a conversation outlives the call.
"""

import asyncio
import logging
import uuid

from google.adk import Agent
from google.adk.models.lite_llm import LiteLlm
from google.adk.runners import InMemoryRunner
from google.genai import types
from pydantic import BaseModel

from src.callbacks import after_model_callback, before_model_callback, screen_utterance
from src.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

APP_NAME = "voice_link_assistant"
USER_ID = "anonymous"


class LlmGateway:
    """
    Runs one-shot structured prompts against the configured model.

    Failures (timeouts, provider errors, unparseable output, open circuit)
    are raised to the caller. Calls are never retried.
    """

    def __init__(
        self,
        model_name: str,
        api_key: str | None,
        timeout_seconds: float,
        circuit_breaker: CircuitBreaker,
    ):
        logger.info(f"Initializing LlmGateway with model {model_name}")

        self.model = LiteLlm(model=model_name, api_key=api_key)
        self.timeout_seconds = timeout_seconds
        self.circuit_breaker = circuit_breaker

        self._runners: dict[str, InMemoryRunner] = {}
        self._schemas: dict[str, type[BaseModel]] = {}

    def register_task(
        self,
        name: str,
        instruction: str,
        output_schema: type[BaseModel],
        description: str = "",
    ) -> None:
        """Create the ADK agent and runner serving one task."""
        agent = Agent(
            name=name,
            model=self.model,
            description=description,
            instruction=instruction,
            output_schema=output_schema,
            before_model_callback=before_model_callback,
            after_model_callback=after_model_callback,
        )
        self._runners[name] = InMemoryRunner(agent=agent, app_name=APP_NAME)
        self._schemas[name] = output_schema
        logger.info(f"Registered LLM task: {name}")

    async def generate(self, task: str, message: str) -> BaseModel | None:
        """
        Run a task on one message and parse the structured result.

        Returns:
            Parsed output schema instance, or None when the model said nothing

        Raises:
            KeyError: If the task was never registered
            UnsafeInputError: If the message fails input screening
            CircuitBreakerOpenError: If the provider is considered down
            asyncio.TimeoutError, pydantic.ValidationError, provider errors
        """
        runner = self._runners[task]
        schema = self._schemas[task]

        # Rejected input never reaches the breaker
        screen_utterance(message)

        text = await self.circuit_breaker.call(self._run_with_timeout, runner, message)
        if not text or not text.strip():
            logger.warning(f"LLM task {task} returned no output")
            return None

        return schema.model_validate_json(_strip_code_fence(text))

    async def _run_with_timeout(self, runner: InMemoryRunner, message: str) -> str:
        return await asyncio.wait_for(self._run_once(runner, message), timeout=self.timeout_seconds)

    async def _run_once(self, runner: InMemoryRunner, message: str) -> str:
        """Run the agent in a fresh session and return its final text."""
        session_id = uuid.uuid4().hex
        await runner.session_service.create_session(
            app_name=APP_NAME, user_id=USER_ID, session_id=session_id
        )

        content = types.Content(role="user", parts=[types.Part(text=message)])
        final_response_text = None

        try:
            async for event in runner.run_async(
                user_id=USER_ID, session_id=session_id, new_message=content
            ):
                if event.is_final_response():
                    if event.content and event.content.parts:
                        final_response_text = event.content.parts[0].text
                    break
        finally:
            await runner.session_service.delete_session(
                app_name=APP_NAME, user_id=USER_ID, session_id=session_id
            )

        return final_response_text or ""

    def get_circuit_breaker_state(self) -> dict:
        return self.circuit_breaker.get_state()


def _strip_code_fence(text: str) -> str:
    """Some models wrap JSON in ```json fences even when asked not to."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
