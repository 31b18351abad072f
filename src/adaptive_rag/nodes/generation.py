# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Answer synthesis from reranked context.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Generation node for the LangGraph pipeline."""

import asyncio
from typing import Any, Sequence

import structlog
from google import genai
from langchain_core.runnables import RunnableConfig

from adaptive_rag.configuration import Configuration
from adaptive_rag.infrastructure.clients import gemini_client
from adaptive_rag.nodes.tracing import pipeline_step
from adaptive_rag.schemas import Intent, ParsedQuery, RankedResult
from adaptive_rag.state import PipelineState
from adaptive_rag.tools.gemini import gemini_generate

logger = structlog.get_logger()

ANSWER_TEMPERATURE = 0.7
CONTEXT_DOCUMENTS = 5

GREETING_ANSWER = (
    "Hello! I can answer questions grounded in the document collection. "
    "Ask me about people, organizations, places, products or technical topics."
)
NO_RESULTS_ANSWER = (
    "Sorry, I could not find any relevant information for your question. "
    "Please try different keywords or a more concise phrasing."
)
APOLOGY_ANSWER = "Sorry, an error occurred while generating the answer. Please try again later."

TONE_BY_INTENT: dict[Intent, str] = {
    Intent.FACTUAL: "Give a direct, precise answer first, then supporting details.",
    Intent.CONCEPTUAL: "Explain the concept clearly, from the basic idea to the details.",
    Intent.COMPARISON: "Contrast the items point by point and state the key differences.",
    Intent.PROCEDURAL: "Answer as ordered steps the user can follow.",
    Intent.EXPLORATORY: "Give a broad overview and point out related aspects worth exploring.",
}

ANSWER_PROMPT = (
    "You are a question answering assistant. Answer the user's question using "
    "ONLY the retrieved context below.\n\n"
    "User question: {query}\n"
    "Query intent: {intent}\n"
    "Extracted entities: {entities}\n\n"
    "RETRIEVED CONTEXT:\n"
    "{context}\n\n"
    "Guidelines:\n"
    "1. Cite the documents you use by their tag (e.g. [Document 2]).\n"
    "2. {tone}\n"
    "3. If the context is insufficient, say so honestly and state what is known and what is not.\n"
    "4. Answer in the language of the user question."
)


def build_context(results: Sequence[RankedResult], limit: int = CONTEXT_DOCUMENTS) -> str:
    """Format the top results as tagged context blocks."""
    return "\n\n---\n\n".join(
        f"[Document {i}] (relevance: {r.rerank_score * 100:.1f}%)\n{r.content}"
        for i, r in enumerate(results[:limit], start=1)
    )


async def generate_answer(
    parsed_query: ParsedQuery,
    ranked_results: Sequence[RankedResult],
    client: genai.Client,
    model: str,
) -> str:
    """Compose the final answer. Never raises.

    Args:
        parsed_query: Parse of the current query.
        ranked_results: Reranked search results, best first.
        client: Gemini client (injected).
        model: Gemini model name.

    Returns:
        str: Model answer, or one of the fixed greeting / no-results / apology messages.
    """
    if parsed_query.is_small_talk:
        return GREETING_ANSWER
    if not ranked_results:
        logger.info("generate_no_results", query=parsed_query.original_query)
        return NO_RESULTS_ANSWER

    prompt = ANSWER_PROMPT.format(
        query=parsed_query.original_query,
        intent=parsed_query.intent.value,
        entities=", ".join(f"{e.name}({e.type.value})" for e in parsed_query.entities) or "-",
        context=build_context(ranked_results),
        tone=TONE_BY_INTENT[parsed_query.intent],
    )
    try:
        answer = await asyncio.to_thread(
            gemini_generate, client, prompt, model=model, temperature=ANSWER_TEMPERATURE
        )
    except Exception as e:
        logger.error("generate_failed", error=str(e))
        return APOLOGY_ANSWER

    if not isinstance(answer, str) or not answer.strip():
        logger.warning("generate_empty_answer")
        return APOLOGY_ANSWER
    return answer.strip()


@pipeline_step("generate")
async def generate(state: PipelineState, config: RunnableConfig) -> dict[str, Any]:
    """Write the final answer into the state.

    Args:
        state: Current graph state.
        config: LangGraph runtime configuration.

    Returns:
        dict[str, Any]: Partial state update with final_answer.
    """
    configuration = Configuration.from_runnable_config(config)
    client = await gemini_client.get_client()
    answer = await generate_answer(
        state.parsed_query, state.ranked_results, client, configuration.model
    )
    logger.info("generate_done", answer_len=len(answer), context=min(len(state.ranked_results), CONTEXT_DOCUMENTS))
    return {
        "final_answer": answer,
        "step_details": {"context_documents": min(len(state.ranked_results), CONTEXT_DOCUMENTS)},
    }
