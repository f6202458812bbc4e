"""
Configuration management using Pydantic Settings.
Reads from environment variables.
"""

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

from src.conversation_state import TopicSwitchPolicy


class Settings(BaseSettings):
    """Application settings."""

    model_config = ConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # LLM Configuration
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    litellm_model: str = Field(default="gpt-4o-mini", alias="LITELLM_MODEL")
    llm_timeout_seconds: float = Field(default=20.0, alias="LLM_TIMEOUT_SECONDS")

    # Text-to-speech (ElevenLabs)
    elevenlabs_api_key: str | None = Field(default=None, alias="ELEVENLABS_API_KEY")
    elevenlabs_voice_id: str | None = Field(default=None, alias="ELEVENLABS_VOICE_ID")
    elevenlabs_model_id: str = Field(default="eleven_multilingual_v2", alias="ELEVENLABS_MODEL_ID")
    elevenlabs_base_url: str = Field(
        default="https://api.elevenlabs.io/v1", alias="ELEVENLABS_BASE_URL"
    )
    tts_stability: float = Field(default=0.5, alias="TTS_STABILITY")
    tts_similarity_boost: float = Field(default=0.75, alias="TTS_SIMILARITY_BOOST")
    tts_timeout_seconds: float = Field(default=30.0, alias="TTS_TIMEOUT_SECONDS")

    # Dialogue behaviour
    topic_switch_policy: TopicSwitchPolicy = Field(
        default=TopicSwitchPolicy.CONTINUE, alias="TOPIC_SWITCH_POLICY"
    )

    # Application Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Circuit Breaker Configuration
    circuit_breaker_failure_threshold: int = Field(
        default=5, alias="CIRCUIT_BREAKER_FAILURE_THRESHOLD"
    )
    circuit_breaker_timeout: int = Field(default=60, alias="CIRCUIT_BREAKER_TIMEOUT")

    @property
    def use_llm(self) -> bool:
        """Language-model collaborators are used only when credentials exist."""
        return bool(self.openai_api_key)


# Global settings instance
settings = Settings()
