# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Tests for Google Gemini tools.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Tests for Google Gemini tools."""

from unittest.mock import MagicMock

import pytest
from google.genai.errors import ClientError
from pydantic import BaseModel

from adaptive_rag.tools.gemini import gemini_generate


class _Answer(BaseModel):
    answer: str


def test_gemini_generate_returns_text():
    """Verify that gemini_generate returns text content correctly."""
    mock_client = MagicMock()
    mock_response = MagicMock()
    mock_response.text = "generated response"
    mock_client.models.generate_content.return_value = mock_response

    result = gemini_generate(client=mock_client, prompt="hello")

    assert result == "generated response"
    mock_client.models.generate_content.assert_called_once()


def test_gemini_generate_json_mode_returns_text():
    """Without a schema, JSON mode still hands back the raw text for decoding."""
    mock_client = MagicMock()
    mock_response = MagicMock()
    mock_response.text = '{"answer": "42"}'
    mock_client.models.generate_content.return_value = mock_response

    result = gemini_generate(
        client=mock_client,
        prompt="hello",
        response_mime_type="application/json",
    )

    assert result == '{"answer": "42"}'


def test_gemini_generate_returns_parsed_with_schema():
    mock_client = MagicMock()
    mock_response = MagicMock()
    mock_response.parsed = _Answer(answer="42")
    mock_client.models.generate_content.return_value = mock_response

    result = gemini_generate(
        client=mock_client,
        prompt="hello",
        response_mime_type="application/json",
        response_schema=_Answer,
    )

    assert result == _Answer(answer="42")


def test_gemini_generate_passes_model_and_temperature():
    mock_client = MagicMock()
    mock_client.models.generate_content.return_value = MagicMock(text="ok")

    gemini_generate(client=mock_client, prompt="hello", model="gemini-test", temperature=0.1)

    kwargs = mock_client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-test"
    assert kwargs["contents"] == "hello"
    assert kwargs["config"].temperature == 0.1


def test_gemini_generate_makes_a_single_attempt():
    """Errors propagate to the caller after one call, including rate limits."""
    mock_client = MagicMock()
    mock_client.models.generate_content.side_effect = ClientError(429, {})

    with pytest.raises(ClientError):
        gemini_generate(client=mock_client, prompt="hello")

    assert mock_client.models.generate_content.call_count == 1
