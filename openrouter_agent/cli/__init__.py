"""Command-line interface for openrouter-agent."""
