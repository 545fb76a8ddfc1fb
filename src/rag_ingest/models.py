"""Domain models shared by the ingestion pipeline and the vector store."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rag_ingest.exceptions import ConfigError


class SourceKind(str, Enum):
    """How a declared source is turned into raw text."""

    PAGINATED_JSON = "paginated-json"
    HTML = "html"
    PDF = "pdf"


class SimilarityMetric(str, Enum):
    """Distance function a collection is declared with."""

    COSINE = "cosine"
    EUCLIDEAN = "euclidean"
    DOT_PRODUCT = "dot_product"


class DataSource(BaseModel):
    """One ingestion unit, declared at startup.

    Attributes
    ----------
    url:
        Entry point of the source (first page, page URL or PDF URL).
    kind:
        Which adapter handles the source.
    name:
        Short label stored as the ``type`` metadata of every record.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1)
    kind: SourceKind
    name: str = Field(min_length=1)


class Progress(BaseModel):
    """Resumption state of one paginated source.

    ``last_processed_cursor`` is the URL of the next page to request. A
    record whose cursor is ``None`` marks a source whose final page has
    been ingested, including a source whose only page was empty; it stays
    that way until explicitly reset.
    """

    source_url: str
    last_processed_cursor: str | None = None
    processed_item_count: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def completed(self) -> bool:
        return self.last_processed_cursor is None


class RawUnit(BaseModel):
    """A piece of fetched content before chunking."""

    source_name: str
    payload: str | dict[str, Any]
    origin_url: str
    item_label: str | None = None

    def as_text(self) -> str:
        if isinstance(self.payload, str):
            return self.payload
        return json.dumps(self.payload, ensure_ascii=False)


class Chunk(BaseModel):
    """A bounded text segment ready for embedding."""

    text: str
    source_name: str
    origin_url: str
    item_label: str | None = None


class VectorRecord(BaseModel):
    """The unit persisted to the vector store."""

    vector: list[float]
    text: str = Field(min_length=1)
    metadata: dict[str, str]

    @classmethod
    def from_chunk(cls, chunk: Chunk, vector: list[float]) -> VectorRecord:
        metadata = {"type": chunk.source_name, "url": chunk.origin_url}
        if chunk.item_label:
            metadata["name"] = chunk.item_label
        return cls(vector=vector, text=chunk.text, metadata=metadata)

    def record_id(self) -> str:
        """Deterministic id: the same chunk of the same item maps to one row."""
        key = "\x1f".join(
            (self.metadata.get("url", ""), self.metadata.get("name", ""), self.text)
        )
        return hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]


class CollectionDescriptor(BaseModel):
    """Schema of a vector-store collection."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    dimension: int = Field(gt=0)
    metric: SimilarityMetric = SimilarityMetric.COSINE


def load_sources(path: str | Path) -> list[DataSource]:
    """Read the ordered source declaration from a JSON file.

    The file holds a list of ``{"url", "kind", "name"}`` objects. Any
    structural problem raises :class:`ConfigError` before a single request
    is made.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Source declaration not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Source declaration {path} is not valid JSON: {exc}") from exc

    if not isinstance(raw, list):
        raise ConfigError(f"Source declaration {path} must be a JSON list, got {type(raw).__name__}")

    sources: list[DataSource] = []
    for index, entry in enumerate(raw):
        try:
            sources.append(DataSource.model_validate(entry))
        except ValidationError as exc:
            raise ConfigError(f"Invalid source #{index} in {path}: {exc}") from exc
    return sources
