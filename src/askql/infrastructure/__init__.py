"""
Infrastructure layer for external integrations.

This module contains clients for external services: the PostgreSQL
database and the OpenRouter-hosted LLM.
"""

from .database_client import DatabaseClient
from .llm_client import LLMClient

__all__ = ["DatabaseClient", "LLMClient"]
