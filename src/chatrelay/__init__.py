"""chatrelay - relay agent questions to a human over Telegram."""

__version__ = "0.1.0"
