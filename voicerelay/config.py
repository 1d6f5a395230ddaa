# voicerelay/config.py
"""
Typed configuration for the relay, loaded once at process start.

Env vars (all optional unless listed by Settings.missing_required()):
  GENERATION_PROVIDER=gemini|openai|anthropic   (default: gemini)
  GEMINI_API_KEY, GEMINI_MODEL
  OPENAI_API_KEY, OPENAI_CHAT_MODEL
  ANTHROPIC_API_KEY, ANTHROPIC_MODEL
  WHISPER_API_KEY (falls back to OPENAI_API_KEY), WHISPER_BASE_URL,
  WHISPER_MODEL, WHISPER_LANGUAGE
  STORE_BACKEND=firebase|sql                    (default: firebase)
  FIREBASE_PROJECT_ID, FIREBASE_PRIVATE_KEY_ID, FIREBASE_PRIVATE_KEY,
  FIREBASE_CLIENT_EMAIL, FIREBASE_CLIENT_ID, FIREBASE_CERT_URL,
  FIREBASE_DATABASE_URL
  DATABASE_URL                                  (sql backend only)
  MOCK_AI=true                                  (offline providers for dev/tests)
  GENERATION_TIMEOUT_SECONDS                    (default: 25)
"""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from voicerelay.errors import ConfigError

# Limits sized for ESP32 memory and serverless time budgets
MAX_REQUEST_ID_LENGTH = 64
MAX_QUERY_LENGTH = 1000
MAX_RESPONSE_LENGTH = 1000
MAX_AUDIO_BASE64_BYTES = 200 * 1024  # ~4s of 16kHz 16-bit WAV after base64
MAX_AUDIO_BINARY_BYTES = 2 * 1024 * 1024
GENERATION_TIMEOUT_SECONDS = 25.0
POLL_RETRY_DELAY_MS = 1000

RESPONSES_PATH = "responses"

GENERATION_PROVIDERS = ("gemini", "openai", "anthropic")
STORE_BACKENDS = ("firebase", "sql")

FIREBASE_REQUIRED = (
    "FIREBASE_PROJECT_ID",
    "FIREBASE_PRIVATE_KEY",
    "FIREBASE_CLIENT_EMAIL",
    "FIREBASE_DATABASE_URL",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    generation_provider: str = "gemini"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    openai_api_key: str = ""
    openai_chat_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"

    whisper_api_key: str = ""
    whisper_base_url: Optional[str] = None
    whisper_model: str = "whisper-1"
    whisper_language: str = "en"

    store_backend: str = "firebase"
    firebase_project_id: str = ""
    firebase_private_key_id: str = ""
    firebase_private_key: str = ""
    firebase_client_email: str = ""
    firebase_client_id: str = ""
    firebase_cert_url: str = ""
    firebase_database_url: str = ""
    database_url: str = "sqlite:///./voice_relay.db"

    mock_ai: bool = False
    generation_timeout_seconds: float = GENERATION_TIMEOUT_SECONDS

    @property
    def transcription_api_key(self) -> str:
        return self.whisper_api_key or self.openai_api_key

    def firebase_service_account(self) -> dict:
        """Service-account dict built from env vars, so no JSON file has to ship."""
        return {
            "type": "service_account",
            "project_id": self.firebase_project_id,
            "private_key_id": self.firebase_private_key_id,
            # env vars usually carry the PEM with literal "\n" sequences
            "private_key": self.firebase_private_key.replace("\\n", "\n"),
            "client_email": self.firebase_client_email,
            "client_id": self.firebase_client_id,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
            "client_x509_cert_url": self.firebase_cert_url,
        }

    def missing_required(self) -> List[str]:
        missing: List[str] = []
        if self.generation_provider not in GENERATION_PROVIDERS:
            missing.append(f"GENERATION_PROVIDER (one of {', '.join(GENERATION_PROVIDERS)})")
        if self.store_backend not in STORE_BACKENDS:
            missing.append(f"STORE_BACKEND (one of {', '.join(STORE_BACKENDS)})")

        if not self.mock_ai:
            provider_keys = {
                "gemini": ("GEMINI_API_KEY", self.gemini_api_key),
                "openai": ("OPENAI_API_KEY", self.openai_api_key),
                "anthropic": ("ANTHROPIC_API_KEY", self.anthropic_api_key),
            }
            if self.generation_provider in provider_keys:
                name, value = provider_keys[self.generation_provider]
                if not value:
                    missing.append(name)
            if not self.transcription_api_key:
                missing.append("WHISPER_API_KEY or OPENAI_API_KEY")

        if self.store_backend == "firebase":
            for name in FIREBASE_REQUIRED:
                if not getattr(self, name.lower()):
                    missing.append(name)
        return missing


def load_settings(**overrides) -> Settings:
    """Build Settings from the environment and fail fast on missing keys."""
    settings = Settings(**overrides)
    missing = settings.missing_required()
    if missing:
        raise ConfigError(missing)
    return settings
