# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Reusable Google Gemini generation function.
# Pure function with dependency injection, no global config or singletons.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

from typing import Any

import structlog
from google import genai

logger = structlog.get_logger()


def gemini_generate(
    client: genai.Client,
    prompt: str,
    system_instruction: str | None = None,
    model: str = "gemini-2.0-flash",
    response_mime_type: str = "text/plain",
    response_schema: Any | None = None,
    temperature: float | None = None,
) -> Any:
    """Generate text or structured data using Google Gemini.

    One attempt per call: rate limiting and transport retries belong to the
    SDK, and callers degrade on failure. This function is synchronous;
    callers should wrap it with ``asyncio.to_thread`` to avoid blocking the
    event loop.

    Args:
        client: Gemini client instance (injected).
        prompt: User prompt.
        system_instruction: Optional system instruction/persona.
        model: Gemini generation model name.
        response_mime_type: Output MIME type (e.g., "application/json").
        response_schema: Optional Pydantic or JSON schema for structured output.
        temperature: Optional sampling temperature.

    Returns:
        Any: The response text, or the parsed object when a schema is given.
    """
    config: dict[str, Any] = {"response_mime_type": response_mime_type}
    if response_schema is not None:
        config["response_schema"] = response_schema
    if temperature is not None:
        config["temperature"] = temperature

    try:
        response = client.models.generate_content(
            model=model,
            contents=prompt,
            config=genai.types.GenerateContentConfig(
                system_instruction=system_instruction,
                **config,
            ),
        )
    except Exception as e:
        logger.error("gemini_generate_error", model=model, error=str(e))
        raise

    if response_schema is not None and response.parsed is not None:
        return response.parsed
    return response.text
