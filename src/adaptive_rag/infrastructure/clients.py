# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Client wiring layer.
# This is the only module (besides settings.py) that reads secrets
# and instantiates infrastructure clients. All other modules receive
# injected dependencies.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------


from adaptive_rag.infrastructure.entity_registry import EntityRegistry
from adaptive_rag.infrastructure.gemini_client import GeminiClient
from adaptive_rag.infrastructure.hf_embedding_client import HFEmbeddingClient
from adaptive_rag.infrastructure.pinecone_client import PineconeClient
from adaptive_rag.settings import settings

pinecone_client = PineconeClient(
    api_key=settings.pinecone_api_key.get_secret_value(),
    index_name=settings.pinecone_index_name,
)

gemini_client = GeminiClient(
    api_key=settings.gemini_api_key.get_secret_value(),
)

hf_embedding_client = HFEmbeddingClient(
    model_name=settings.embedding_model_name,
    api_token=settings.hf_token.get_secret_value(),
)

entity_registry = EntityRegistry(settings.registry_path)
