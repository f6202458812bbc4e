"""
Text-to-speech via the ElevenLabs HTTP API.
Returns audio as a data URI the browser can play directly.
"""

import base64
import logging

import httpx

from src.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from src.config import Settings, settings
from src.observability import trace_span

logger = logging.getLogger(__name__)

AUDIO_DATA_URI_PREFIX = "data:audio/mpeg;base64,"

# Playable-but-silent answer used whenever synthesis is unavailable
EMPTY_AUDIO_URI = AUDIO_DATA_URI_PREFIX


class SpeechSynthesizer:
    """
    ElevenLabs client with circuit breaker protection.

    Synthesis problems never raise: the caller gets an empty audio URI and
    the UI simply shows the text reply.
    """

    def __init__(
        self,
        api_key: str | None,
        voice_id: str | None,
        model_id: str = "eleven_multilingual_v2",
        base_url: str = "https://api.elevenlabs.io/v1",
        stability: float = 0.5,
        similarity_boost: float = 0.75,
        timeout_seconds: float = 30.0,
        circuit_breaker: CircuitBreaker | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self.base_url = base_url.rstrip("/")
        self.stability = stability
        self.similarity_boost = similarity_boost
        self.timeout_seconds = timeout_seconds
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name="TtsCircuitBreaker")
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "SpeechSynthesizer":
        return cls(
            api_key=settings.elevenlabs_api_key,
            voice_id=settings.elevenlabs_voice_id,
            model_id=settings.elevenlabs_model_id,
            base_url=settings.elevenlabs_base_url,
            stability=settings.tts_stability,
            similarity_boost=settings.tts_similarity_boost,
            timeout_seconds=settings.tts_timeout_seconds,
            circuit_breaker=CircuitBreaker(
                failure_threshold=settings.circuit_breaker_failure_threshold,
                timeout=settings.circuit_breaker_timeout,
                name="TtsCircuitBreaker",
            ),
        )

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def synthesize(self, text: str) -> str:
        """
        Convert text to speech.

        Returns:
            "" for blank text, an audio data URI on success, and the empty
            audio URI when synthesis is not configured or fails
        """
        if not text or not text.strip():
            return ""

        if not self.api_key:
            logger.error("ElevenLabs API key is not configured.")
            return EMPTY_AUDIO_URI
        if not self.voice_id:
            logger.error("ElevenLabs Voice ID is not configured.")
            return EMPTY_AUDIO_URI

        try:
            with trace_span("text_to_speech", chars=len(text)):
                audio = await self.circuit_breaker.call(self._request_audio, text)
        except CircuitBreakerOpenError as e:
            logger.warning(f"Skipping speech synthesis: {e}")
            return EMPTY_AUDIO_URI
        except httpx.HTTPStatusError as e:
            logger.error(
                f"ElevenLabs API Error ({e.response.status_code}): {e.response.text}"
            )
            return EMPTY_AUDIO_URI
        except httpx.HTTPError as e:
            logger.error(f"Error calling ElevenLabs API: {str(e)}")
            return EMPTY_AUDIO_URI

        logger.info(f"Generated speech with ElevenLabs for {len(text)} characters")
        return AUDIO_DATA_URI_PREFIX + base64.b64encode(audio).decode("ascii")

    async def _request_audio(self, text: str) -> bytes:
        response = await self._get_client().post(
            f"{self.base_url}/text-to-speech/{self.voice_id}",
            headers={
                "Accept": "audio/mpeg",
                "Content-Type": "application/json",
                "xi-api-key": self.api_key,
            },
            json={
                "text": text,
                "model_id": self.model_id,
                "voice_settings": {
                    "stability": self.stability,
                    "similarity_boost": self.similarity_boost,
                },
            },
        )
        response.raise_for_status()
        return response.content

    def get_circuit_breaker_state(self) -> dict:
        return self.circuit_breaker.get_state()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.info("Speech client closed")


# Global synthesizer instance
speech_synthesizer = None


def get_speech_synthesizer() -> SpeechSynthesizer:
    """Get or create global synthesizer instance."""
    global speech_synthesizer
    if speech_synthesizer is None:
        speech_synthesizer = SpeechSynthesizer.from_settings(settings)
    return speech_synthesizer
