"""Base storage class and helpers.

Contains initialization, collection management, and shared utilities.
"""

from __future__ import annotations

import asyncio
import hashlib
from typing import Any, TypeVar

from pydantic import BaseModel
from qdrant_client import AsyncQdrantClient, models

from storywire.config import settings
from storywire.models import Project, Story, WebhookEvent

DocumentT = TypeVar("DocumentT", Project, Story, WebhookEvent)

# Collection names by document type
COLLECTION_NAMES = {
    "projects": "projects",
    "stories": "stories",
    "webhook_events": "webhook_events",
}

# Payload fields filtered on, per collection
INDEXED_FIELDS = {
    "projects": (),
    "stories": ("project_id", "status"),
    "webhook_events": ("project_id", "story_id", "status"),
}

# Documents are not searched by similarity; every point carries the same
# one-dimensional vector.
PLACEHOLDER_VECTOR = [1.0]


class StorageBase:
    """Base class for Storywire storage with initialization and helpers.

    Provides:
    - Client initialization and lifecycle management
    - Collection creation and indexing
    - Point ID conversion
    - Payload serialization/deserialization
    - The write lock serializing read-modify-write updates
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        prefix: str | None = None,
        location: str | None = None,
    ) -> None:
        """Initialize storage client.

        Args:
            url: Qdrant server URL. Defaults to settings.qdrant_url.
            api_key: Qdrant API key. Defaults to settings.qdrant_api_key.
            prefix: Collection name prefix. Defaults to settings.collection_prefix.
            location: Qdrant local-mode location (":memory:" or a path).
                Overrides ``url`` when set.
        """
        self._url = url or settings.qdrant_url
        self._api_key = api_key or settings.qdrant_api_key
        self._prefix = prefix or settings.collection_prefix
        self._location = location
        self._client: AsyncQdrantClient | None = None
        self._write_lock = asyncio.Lock()

    @property
    def client(self) -> AsyncQdrantClient:
        """Get the Qdrant client, raising if not initialized."""
        if self._client is None:
            raise RuntimeError("Storage not initialized. Call initialize() first.")
        return self._client

    async def initialize(self) -> None:
        """Initialize the storage client and ensure collections exist."""
        if self._location is not None:
            self._client = AsyncQdrantClient(location=self._location)
        else:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
        await self._ensure_collections()

    async def close(self) -> None:
        """Close the storage client connection."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> StorageBase:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _collection_name(self, doc_type: str) -> str:
        """Get full collection name with prefix."""
        suffix = COLLECTION_NAMES.get(doc_type, doc_type)
        return f"{self._prefix}_{suffix}"

    @staticmethod
    def _key_to_point_id(key: str) -> str:
        """Convert a document ID to a valid Qdrant point ID.

        Qdrant requires point IDs to be UUIDs or unsigned integers.
        We hash the key to create a deterministic UUID-format string.
        """
        h = hashlib.sha256(key.encode()).hexdigest()[:32]
        return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"

    async def _ensure_collections(self) -> None:
        """Ensure all required collections exist."""
        collections = await self.client.get_collections()
        existing = {c.name for c in collections.collections}

        for doc_type in COLLECTION_NAMES:
            collection_name = self._collection_name(doc_type)
            if collection_name in existing:
                continue
            await self.client.create_collection(
                collection_name=collection_name,
                vectors_config=models.VectorParams(
                    size=len(PLACEHOLDER_VECTOR),
                    distance=models.Distance.DOT,
                ),
            )
            for field_name in INDEXED_FIELDS[doc_type]:
                await self.client.create_payload_index(
                    collection_name=collection_name,
                    field_name=field_name,
                    field_schema=models.PayloadSchemaType.KEYWORD,
                )

    async def _upsert_document(self, doc_type: str, document: BaseModel, doc_id: str) -> None:
        """Write a document as the payload of its point."""
        await self.client.upsert(
            collection_name=self._collection_name(doc_type),
            points=[
                models.PointStruct(
                    id=self._key_to_point_id(doc_id),
                    vector=PLACEHOLDER_VECTOR,
                    payload=self._document_to_payload(document),
                )
            ],
        )

    async def _retrieve_document(
        self, doc_type: str, doc_id: str, doc_class: type[DocumentT]
    ) -> DocumentT | None:
        """Read one document by ID, or None if it does not exist."""
        results = await self.client.retrieve(
            collection_name=self._collection_name(doc_type),
            ids=[self._key_to_point_id(doc_id)],
            with_payload=True,
        )
        if not results or results[0].payload is None:
            return None
        return self._payload_to_document(results[0].payload, doc_class)

    async def _scroll_documents(
        self,
        doc_type: str,
        doc_class: type[DocumentT],
        conditions: list[models.FieldCondition],
        page_size: int = 256,
    ) -> list[DocumentT]:
        """Read every document matching all ``conditions``."""
        documents: list[DocumentT] = []
        offset: Any = None
        while True:
            records, offset = await self.client.scroll(
                collection_name=self._collection_name(doc_type),
                scroll_filter=models.Filter(must=conditions) if conditions else None,
                limit=page_size,
                offset=offset,
                with_payload=True,
            )
            documents.extend(
                self._payload_to_document(r.payload, doc_class)
                for r in records
                if r.payload is not None
            )
            if offset is None:
                return documents

    @staticmethod
    def _match(key: str, value: str) -> models.FieldCondition:
        return models.FieldCondition(key=key, match=models.MatchValue(value=value))

    @staticmethod
    def _document_to_payload(document: BaseModel) -> dict[str, Any]:
        """Convert a document model to Qdrant payload."""
        return document.model_dump(mode="json")

    @staticmethod
    def _payload_to_document(payload: dict[str, Any], doc_class: type[DocumentT]) -> DocumentT:
        """Convert Qdrant payload back to a document model."""
        return doc_class.model_validate(payload)
