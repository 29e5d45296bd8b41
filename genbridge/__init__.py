"""genbridge - one content-generation interface over Gemini and OpenAI-wire providers."""

__version__ = "0.3.0"
