from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
	openai_base_url: str = Field(default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL")
	# Realtime session used by the browser for the spoken interview
	realtime_model: str = Field(default="gpt-4o-mini-realtime-preview", validation_alias="OPENAI_REALTIME_MODEL")
	realtime_voice: str = Field(default="verse", validation_alias="OPENAI_REALTIME_VOICE")
	transcription_model: str = Field(default="whisper-1", validation_alias="OPENAI_TRANSCRIPTION_MODEL")
	# Chat model that produces the final structured evaluation
	evaluation_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_EVALUATION_MODEL")
	evaluation_temperature: float = Field(default=0.2, validation_alias="EVALUATION_TEMPERATURE")
	evaluation_max_tokens: int = Field(default=1500, validation_alias="EVALUATION_MAX_TOKENS")
	# One timeout for every outbound call, no retries
	request_timeout_seconds: float = Field(default=30.0, validation_alias="OPENAI_TIMEOUT_SECONDS")

	# Interview defaults
	default_language: str = Field(default="Chinese", validation_alias="DEFAULT_LANGUAGE")
	default_duration_minutes: int = Field(default=10, validation_alias="DEFAULT_DURATION_MINUTES")
	evaluation_tool_name: str = Field(default="record_language_observation", validation_alias="EVALUATION_TOOL_NAME")
	# "every_turn" or "session_end"
	evaluation_tool_trigger: str = Field(default="every_turn", validation_alias="EVALUATION_TOOL_TRIGGER")

	# Sessions nobody stopped are dropped after this long
	session_ttl_seconds: float = Field(default=3600.0, validation_alias="SESSION_TTL_SECONDS")

	host: str = Field(default="127.0.0.1", validation_alias="HOST")
	port: int = Field(default=8000, validation_alias="PORT")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
