# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Shared pytest configuration.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Shared pytest configuration.

Settings are read at import time, so placeholder secrets are set before any
``adaptive_rag`` module is collected. No test talks to a real service.
"""

import os

import pytest

os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("PINECONE_API_KEY", "test-pinecone-key")
os.environ.setdefault("HUGGING_FACE_HUB_TOKEN", "test-hf-token")


@pytest.fixture
def anyio_backend():
    return "asyncio"
