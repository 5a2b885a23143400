"""OpenAI-compatible chat completions proxy for PublicAI."""

__version__ = "0.1.0"
