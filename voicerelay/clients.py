# voicerelay/clients.py
"""
Vendor client bootstrap.

One ClientRegistry is built from Settings at startup and handed to every
adapter. Each client is constructed on first use and reused afterwards, so a
serverless cold start only pays for the clients a request actually needs.
"""

from functools import cached_property

from voicerelay import monitoring
from voicerelay.config import Settings


class ClientRegistry:
    def __init__(self, settings: Settings):
        self.settings = settings

    @cached_property
    def gemini(self):
        from google import genai

        monitoring.logger.info("Initializing Gemini client", extra={"model": self.settings.gemini_model})
        return genai.Client(api_key=self.settings.gemini_api_key)

    @cached_property
    def openai_chat(self):
        from openai import AsyncOpenAI

        monitoring.logger.info("Initializing OpenAI chat client")
        return AsyncOpenAI(api_key=self.settings.openai_api_key)

    @cached_property
    def anthropic(self):
        from anthropic import AsyncAnthropic

        monitoring.logger.info("Initializing Anthropic client")
        return AsyncAnthropic(api_key=self.settings.anthropic_api_key)

    @cached_property
    def whisper(self):
        # Groq exposes an OpenAI-compatible endpoint; WHISPER_BASE_URL switches to it
        from openai import AsyncOpenAI

        monitoring.logger.info(
            "Initializing Whisper client",
            extra={"base_url": self.settings.whisper_base_url or "default", "model": self.settings.whisper_model},
        )
        return AsyncOpenAI(
            api_key=self.settings.transcription_api_key,
            base_url=self.settings.whisper_base_url or None,
        )

    @cached_property
    def firebase_app(self):
        import firebase_admin
        from firebase_admin import credentials

        try:
            app = firebase_admin.get_app()
            monitoring.logger.info("Using existing Firebase app")
            return app
        except ValueError:
            pass

        monitoring.logger.info("Initializing Firebase app", extra={"project_id": self.settings.firebase_project_id})
        cred = credentials.Certificate(self.settings.firebase_service_account())
        return firebase_admin.initialize_app(cred, {"databaseURL": self.settings.firebase_database_url})
