"""
agentchat — chat sessions with agent personas over interchangeable LLM providers.
"""

__version__ = "0.1.0"
