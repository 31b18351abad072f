# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Pinecone client manager with dependency injection.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

import asyncio
from typing import Any

from pinecone import Pinecone


class PineconeClient:
    """Manager for the Pinecone client and the document index handle.

    Args:
        api_key: Pinecone API key.
        index_name: Name of the document index.
    """

    def __init__(self, api_key: str, index_name: str) -> None:
        """Initialize with API key and index name."""
        self._api_key = api_key
        self._index_name = index_name
        self._client: Pinecone | None = None
        self._index: Any | None = None

    @property
    def index_name(self) -> str:
        return self._index_name

    async def get_client(self) -> Pinecone:
        """Get or lazily initialize the Pinecone client.

        Returns:
            Pinecone: The Pinecone client instance.
        """
        if self._client is None:
            self._client = await asyncio.to_thread(Pinecone, api_key=self._api_key)
        return self._client

    async def get_index(self) -> Any:
        """Get or lazily open the document index.

        Returns:
            Any: The Pinecone index handle.
        """
        if self._index is None:
            client = await self.get_client()
            self._index = await asyncio.to_thread(client.Index, self._index_name)
        return self._index
