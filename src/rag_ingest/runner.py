"""Command-line entry point — wires the capabilities together and runs.

Usage
-----
    rag-ingest                          # ingest every declared source
    rag-ingest --sources my.json        # use another declaration file
    rag-ingest --reset https://...      # forget one source's checkpoint first
    rag-ingest --reset-all              # start every paginated source over
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rag_ingest.config import Settings
from rag_ingest.exceptions import IngestError
from rag_ingest.ingestion.chunker import Chunker
from rag_ingest.ingestion.embedder import get_embedding_client
from rag_ingest.ingestion.fetcher import RateLimitedFetcher
from rag_ingest.ingestion.orchestrator import IngestionOrchestrator, RunReport, is_task_retryable
from rag_ingest.ingestion.pool import BoundedWorkPool
from rag_ingest.ingestion.progress import JsonProgressStore, ProgressStore, SqliteProgressStore
from rag_ingest.ingestion.retry import RetryPolicy
from rag_ingest.ingestion.sources import build_adapters
from rag_ingest.models import load_sources

logger = logging.getLogger(__name__)


def build_progress_store(settings: Settings) -> ProgressStore:
    if settings.progress_backend == "sqlite":
        return SqliteProgressStore(settings.progress_path)
    return JsonProgressStore(settings.progress_path)


def build_orchestrator(settings: Settings) -> IngestionOrchestrator:
    """Construct every client once and inject it into the orchestrator."""
    from rag_ingest.store.chroma_store import ChromaVectorStore

    fetcher = RateLimitedFetcher(
        max_attempts=settings.fetch_max_attempts,
        base_delay=settings.fetch_base_delay,
        timeout=settings.request_timeout,
        user_agent=settings.user_agent,
    )
    return IngestionOrchestrator(
        embedder=get_embedding_client(settings),
        store=ChromaVectorStore(
            settings.chroma_collection, host=settings.chroma_host, port=settings.chroma_port
        ),
        progress=build_progress_store(settings),
        adapters=build_adapters(
            fetcher, page_size=settings.page_size, page_interval=settings.page_interval
        ),
        chunker=Chunker(settings.chunk_size, settings.chunk_overlap),
        metric=settings.similarity_metric,
        pool=BoundedWorkPool(settings.concurrency_limit),
        task_policy=RetryPolicy.fixed(
            settings.task_max_attempts, settings.task_retry_delay, is_retryable=is_task_retryable
        ),
    )


def run_ingestion(
    settings: Settings,
    *,
    sources_file: Path | None = None,
    reset: list[str] | None = None,
    reset_all: bool = False,
    orchestrator: IngestionOrchestrator | None = None,
) -> RunReport:
    """Load the source declaration, apply resets and run the pipeline."""
    sources = load_sources(sources_file or settings.sources_file)
    logger.info("Loaded %d source(s)", len(sources))

    orchestrator = orchestrator or build_orchestrator(settings)
    if reset_all:
        for source in sources:
            orchestrator.reset_progress(source.url)
    for url in reset or []:
        if not orchestrator.reset_progress(url):
            logger.warning("No saved progress for %s", url)

    return orchestrator.run(sources)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ingest declared sources into the vector store")
    parser.add_argument("--sources", type=Path, default=None, help="Source declaration (JSON)")
    parser.add_argument(
        "--reset",
        action="append",
        default=[],
        metavar="URL",
        help="Clear the saved progress of URL before running (repeatable)",
    )
    parser.add_argument("--reset-all", action="store_true", help="Clear progress of every declared source")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    try:
        settings = Settings()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        report = run_ingestion(
            settings, sources_file=args.sources, reset=args.reset, reset_all=args.reset_all
        )
    except IngestError as exc:
        logger.critical("Ingestion aborted: %s", exc)
        return 1

    for source_report in report.failed_sources:
        logger.warning("Source %s ended with an error: %s", source_report.source.url, source_report.error)
    return 0


if __name__ == "__main__":
    sys.exit(main())
