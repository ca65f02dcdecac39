"""
openrouter-agent: a command-line agent for OpenRouter models with streamed
output and local tools.
"""

__version__ = "0.3.0"
