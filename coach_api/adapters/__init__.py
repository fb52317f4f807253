"""
Coach API Adapters Module

LLM provider adapters behind a single chat completion interface.
"""

import os
from typing import Optional

from .base import BaseAdapter, AdapterConfig, ProviderHealth
from .openai_adapter import OpenAIAdapter
from .stub_adapter import StubAdapter

__all__ = [
    "BaseAdapter",
    "AdapterConfig",
    "ProviderHealth",
    "OpenAIAdapter",
    "StubAdapter",
    "create_adapter_from_env",
]


def create_adapter_from_env(use_stub: bool = False) -> Optional[BaseAdapter]:
    """
    Build the adapter for this deployment.

    Returns the stub adapter when requested, an OpenAI adapter when
    OPENAI_API_KEY is set, and None otherwise.
    """
    if use_stub:
        return StubAdapter()

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None

    return OpenAIAdapter(AdapterConfig(
        api_key=api_key,
        base_url=os.getenv("OPENAI_BASE_URL") or None,
    ))
