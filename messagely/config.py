from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
	"""Process configuration, built once at startup and passed down."""

	model_config = SettingsConfigDict(
		env_prefix="MESSAGELY_",
		env_file=".env",
		env_file_encoding="utf-8",
		extra="ignore",
	)

	app_name: str = "Messagely"
	debug: bool = False

	secret_key: SecretStr = SecretStr("dev-secret-change-me")
	token_algorithm: str = "HS256"
	token_expire_minutes: Optional[int] = Field(default=None, ge=1)

	# bcrypt accepts 4..31; every step doubles the cost
	bcrypt_rounds: int = Field(default=12, ge=4, le=31)

	database_url: str = "sqlite:///./messagely.db"

	log_level: str = "INFO"
	log_json: bool = False

	empty_results_are_errors: bool = False

	@field_validator("log_level")
	@classmethod
	def validate_log_level(cls, v: str) -> str:
		allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
		upper = v.upper()
		if upper not in allowed:
			raise ValueError(f"log_level must be one of {sorted(allowed)}")
		return upper
