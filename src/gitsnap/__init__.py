"""Convert a repository working tree into a single LLM-readable text file."""

__version__ = "0.1.0"
