# voicerelay/errors.py
from typing import Optional


class RelayError(Exception):
    """Base error. `user_message` is what gets stored and shown to the device."""

    def __init__(self, message: str, user_message: Optional[str] = None):
        self.message = message
        self.user_message = user_message or message
        super().__init__(self.user_message)


class ConfigError(RelayError):
    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(
            "Missing required environment variable(s): " + ", ".join(self.missing)
        )


class TranscriptionError(RelayError):
    pass


class GenerationError(RelayError):
    pass
