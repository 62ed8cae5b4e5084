"""
API client initialization for AI services.

Creates and configures OpenAI and Anthropic client instances for the model
gateway.
"""

import logging
from typing import Optional, Any

logger = logging.getLogger(__name__)


def create_openai_client(api_key: Optional[str], timeout: float = 60.0) -> Optional[Any]:
    """
    Create an async OpenAI client for the analysis model.

    Returns None if api_key is not provided.
    """
    if not api_key:
        logger.warning("[CLIENTS] No OpenAI API key provided")
        return None

    from openai import AsyncOpenAI
    client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
    logger.info("[CLIENTS] OpenAI client initialized")
    return client


def create_anthropic_client(api_key: Optional[str], timeout: float = 60.0) -> Optional[Any]:
    """
    Create an async Anthropic client for Claude API calls.

    Returns None if api_key is not provided.
    """
    if not api_key:
        logger.warning("[CLIENTS] No Anthropic API key provided")
        return None

    import anthropic
    client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
    logger.info("[CLIENTS] Anthropic client initialized")
    return client
