"""Ingestion orchestrator — drives every declared source through the pipeline.

    IDLE → COLLECTION_READY → (FETCHING → CHECKPOINTING → CHUNKING → EMBEDDING)* → DONE

Sources are processed one after another; only the embed + upsert of one
batch of chunks is fanned out over the :class:`BoundedWorkPool` and joined
before the next page is requested.

Failure containment:

* a chunk whose embed + upsert keeps failing is logged and skipped;
* a source whose adapter fails is logged and the run moves on;
* :class:`~rag_ingest.exceptions.ConfigError` (including a dimension
  mismatch) and a failed collection creation abort the run.

Checkpoints advance as soon as a page has been fetched, before its chunks
are embedded. A restart never re-fetches such a page, so chunks that failed
to embed are only recoverable from the log lines emitted here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING

from rag_ingest.exceptions import (
    CollectionExistsError,
    ConfigError,
    DimensionMismatchError,
    FetchError,
    RetryError,
)
from rag_ingest.ingestion.chunker import Chunker
from rag_ingest.ingestion.pool import BoundedWorkPool, Task
from rag_ingest.ingestion.retry import RetryPolicy
from rag_ingest.ingestion.sources import ContentSource, PaginatedJsonSource
from rag_ingest.models import (
    Chunk,
    CollectionDescriptor,
    DataSource,
    Progress,
    RawUnit,
    SimilarityMetric,
    SourceKind,
    VectorRecord,
)

if TYPE_CHECKING:
    from rag_ingest.ingestion.embedder import EmbeddingClient
    from rag_ingest.ingestion.progress import ProgressStore
    from rag_ingest.store.base import VectorStoreBase

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    IDLE = "idle"
    COLLECTION_READY = "collection_ready"
    FETCHING = "fetching"
    CHECKPOINTING = "checkpointing"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    DONE = "done"


def is_task_retryable(exc: Exception) -> bool:
    return not isinstance(exc, ConfigError)


@dataclass
class SourceReport:
    """What happened to one source during a run."""

    source: DataSource
    pages: int = 0
    units: int = 0
    chunks_stored: int = 0
    chunks_failed: int = 0
    skipped: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.chunks_failed == 0


@dataclass
class RunReport:
    """Summary of a whole run."""

    descriptor: CollectionDescriptor
    sources: list[SourceReport] = field(default_factory=list)

    @property
    def chunks_stored(self) -> int:
        return sum(r.chunks_stored for r in self.sources)

    @property
    def chunks_failed(self) -> int:
        return sum(r.chunks_failed for r in self.sources)

    @property
    def failed_sources(self) -> list[SourceReport]:
        return [r for r in self.sources if r.error is not None]


class IngestionOrchestrator:
    """Fetch, checkpoint, chunk, embed and store every declared source.

    All collaborators are injected; the orchestrator never builds clients
    itself.

    Parameters
    ----------
    embedder:
        Embedding capability (``embed`` / ``probe_dimension``).
    store:
        Vector store written to; its ``collection_name`` is the target.
    progress:
        Checkpoint store for paginated sources.
    adapters:
        Adapter registry keyed by :class:`SourceKind`.
    chunker:
        Text chunker (512 / 100 characters by default).
    metric:
        Similarity metric the collection is declared with.
    pool:
        Worker pool for the embed + upsert fan-out (5 workers by default).
    task_policy:
        Retry policy wrapped around each embed + upsert (3 attempts, 5 s).
    """

    def __init__(
        self,
        *,
        embedder: EmbeddingClient,
        store: VectorStoreBase,
        progress: ProgressStore,
        adapters: Mapping[SourceKind, ContentSource],
        chunker: Chunker | None = None,
        metric: SimilarityMetric = SimilarityMetric.DOT_PRODUCT,
        pool: BoundedWorkPool | None = None,
        task_policy: RetryPolicy | None = None,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._progress = progress
        self._adapters = dict(adapters)
        self._chunker = chunker or Chunker()
        self.metric = metric
        self._pool = pool or BoundedWorkPool()
        self._task_policy = task_policy or RetryPolicy.fixed(3, 5.0, is_retryable=is_task_retryable)
        self.descriptor: CollectionDescriptor | None = None
        self.state = OrchestratorState.IDLE

    # -- public API -----------------------------------------------------------

    def prepare_collection(self) -> CollectionDescriptor:
        """Probe the live embedding dimension and create the collection.

        An already existing collection is reused, provided it was declared
        with the same dimension.

        Raises
        ------
        ConfigError
            When an existing collection disagrees with the live dimension.
        StoreError
            When creation fails for any reason other than "already exists".
        """
        dimension = self._embedder.probe_dimension()
        descriptor = CollectionDescriptor(
            name=self._store.collection_name, dimension=dimension, metric=self.metric
        )
        try:
            self._store.create_collection(descriptor)
        except CollectionExistsError:
            existing = self._store.describe_collection(descriptor.name)
            if existing is not None and existing.dimension != dimension:
                raise DimensionMismatchError(
                    existing.dimension, dimension, context=f"collection {descriptor.name!r}"
                ) from None
            logger.info("Collection %r already exists, reusing it", descriptor.name)

        self.descriptor = descriptor
        self.state = OrchestratorState.COLLECTION_READY
        return descriptor

    def run(self, sources: Iterable[DataSource]) -> RunReport:
        """Ingest *sources* in order and return a run summary.

        A failing source never stops the run; a configuration error does.
        """
        descriptor = self.descriptor or self.prepare_collection()
        report = RunReport(descriptor=descriptor)
        for source in sources:
            report.sources.append(self.ingest_source(source))
            self.state = OrchestratorState.COLLECTION_READY

        self.state = OrchestratorState.DONE
        logger.info(
            "Run complete: %d source(s), %d chunk(s) stored, %d chunk(s) failed, %d source error(s)",
            len(report.sources), report.chunks_stored, report.chunks_failed, len(report.failed_sources),
        )
        return report

    def ingest_source(self, source: DataSource) -> SourceReport:
        """Run one source through the pipeline, containing its failures."""
        if self.descriptor is None:
            raise ConfigError("prepare_collection() must run before ingesting sources")
        adapter = self._adapters.get(source.kind)
        if adapter is None:
            raise ConfigError(f"No adapter registered for source kind {source.kind.value!r}")

        report = SourceReport(source=source)
        logger.info("Ingesting %s (%s) from %s", source.name, source.kind.value, source.url)
        try:
            if isinstance(adapter, PaginatedJsonSource):
                self._ingest_paginated(source, adapter, report)
            else:
                self._ingest_document(source, adapter, report)
        except ConfigError:
            raise
        except Exception as exc:
            logger.error("Source %s (%s) failed: %s", source.name, source.url, exc, exc_info=True)
            report.error = str(exc)

        logger.info(
            "Finished %s: %d page(s), %d unit(s), %d chunk(s) stored, %d failed",
            source.name, report.pages, report.units, report.chunks_stored, report.chunks_failed,
        )
        return report

    def reset_progress(self, source_url: str) -> bool:
        """Forget the checkpoint of *source_url* so the next run starts over."""
        removed = self._progress.reset(source_url)
        if removed:
            logger.info("Progress reset for %s", source_url)
        return removed

    # -- per-kind flows -------------------------------------------------------

    def _ingest_paginated(
        self, source: DataSource, adapter: PaginatedJsonSource, report: SourceReport
    ) -> None:
        saved = self._progress.load(source.url)
        if saved is not None and saved.completed:
            logger.info(
                "Skipping %s: all %d item(s) already ingested (reset its progress to re-ingest)",
                source.url, saved.processed_item_count,
            )
            report.skipped = True
            return

        cursor = saved.last_processed_cursor if saved else None
        item_count = saved.processed_item_count if saved else 0
        if cursor:
            logger.info("Resuming %s at %s (%d item(s) already ingested)", source.url, cursor, item_count)

        self.state = OrchestratorState.FETCHING
        try:
            for page in adapter.pages(source, start_cursor=cursor):
                report.pages += 1
                report.units += len(page.units)
                item_count += len(page.units)

                self.state = OrchestratorState.CHECKPOINTING
                self._progress.save(
                    Progress(
                        source_url=source.url,
                        last_processed_cursor=page.next_cursor,
                        processed_item_count=item_count,
                    )
                )
                self._embed_units(source, page.units, report)
                self.state = OrchestratorState.FETCHING
        except FetchError as exc:
            if not exc.permanent:
                raise
            # Keep the failed page as the resume point for the next run.
            self._progress.save(
                Progress(
                    source_url=source.url,
                    last_processed_cursor=exc.url,
                    processed_item_count=item_count,
                )
            )
            logger.error(
                "Abandoning %s at page %s after %d attempt(s): %s",
                source.url, exc.url, exc.attempts, exc,
            )
            report.error = str(exc)

    def _ingest_document(self, source: DataSource, adapter: ContentSource, report: SourceReport) -> None:
        self.state = OrchestratorState.FETCHING
        units = list(adapter.produce(source))
        report.pages = 1
        report.units = len(units)
        self._embed_units(source, units, report)

    # -- embed + upsert -------------------------------------------------------

    def _embed_units(self, source: DataSource, units: list[RawUnit], report: SourceReport) -> None:
        self.state = OrchestratorState.CHUNKING
        chunks = [chunk for unit in units for chunk in self._chunker.chunk(unit)]
        if not chunks:
            return

        self.state = OrchestratorState.EMBEDDING
        tasks = [
            Task(
                label=f"{source.name}/{chunk.item_label or chunk.origin_url}#{index}",
                fn=partial(self._store_chunk, source, chunk),
            )
            for index, chunk in enumerate(chunks)
        ]
        for outcome in self._pool.run(tasks):
            if outcome.ok:
                report.chunks_stored += 1
            elif isinstance(outcome.error, ConfigError):
                raise outcome.error
            else:
                report.chunks_failed += 1

    def _store_chunk(self, source: DataSource, chunk: Chunk) -> str:
        try:
            return self._task_policy.call(
                partial(self._embed_and_upsert, chunk),
                label=f"embed+upsert {chunk.item_label or chunk.origin_url}",
            )
        except RetryError as exc:
            logger.error(
                "Abandoning chunk of %s (item=%s, url=%s) after %d attempt(s): %s",
                source.url, chunk.item_label or "-", chunk.origin_url, exc.attempts, exc.last_error,
            )
            raise

    def _embed_and_upsert(self, chunk: Chunk) -> str:
        if self.descriptor is None:
            raise ConfigError("prepare_collection() must run before ingesting sources")
        vector = self._embedder.embed(chunk.text)
        if len(vector) != self.descriptor.dimension:
            raise DimensionMismatchError(
                self.descriptor.dimension, len(vector), context=chunk.origin_url
            )
        return self._store.upsert(VectorRecord.from_chunk(chunk, vector))
