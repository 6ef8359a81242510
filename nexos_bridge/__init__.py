"""OpenAI-compatible chat completions proxy for the Nexos chat backend"""

__version__ = "0.1.0"
