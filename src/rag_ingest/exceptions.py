"""Exception hierarchy for the ingestion pipeline.

Errors are grouped by how the pipeline reacts to them:

* :class:`ConfigError` — fatal, the run aborts immediately.
* :class:`FetchError` — transient ones are retried with backoff; a
  permanent one abandons the page being fetched.
* :class:`EmbeddingError` / :class:`StoreError` — retried per chunk; the
  chunk is abandoned (and logged) once the retry budget is spent.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base class for every error raised by ``rag_ingest``."""


# -- configuration ------------------------------------------------------------


class ConfigError(IngestError):
    """Unrecoverable configuration problem.

    Examples: malformed source declaration, an existing collection declared
    with a different dimension than the live embedding model produces.
    """


class DimensionMismatchError(ConfigError):
    """A vector's length disagrees with the collection's declared dimension."""

    def __init__(self, expected: int, actual: int, *, context: str = "") -> None:
        self.expected = expected
        self.actual = actual
        where = f" ({context})" if context else ""
        super().__init__(
            f"Embedding dimension {actual} does not match collection dimension {expected}{where}"
        )


# -- fetching -----------------------------------------------------------------


class FetchError(IngestError):
    """An HTTP fetch failed.

    Parameters
    ----------
    message:
        Human-readable description of the failure.
    url:
        The URL that was requested.
    permanent:
        ``False`` for failures worth retrying (non-2xx, throttling page,
        network error); ``True`` once the retry budget is exhausted.
    attempts:
        Number of attempts made before giving up (permanent errors only).
    """

    def __init__(
        self,
        message: str,
        *,
        url: str,
        permanent: bool = False,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.permanent = permanent
        self.attempts = attempts

    @property
    def transient(self) -> bool:
        return not self.permanent


# -- embedding / storage ------------------------------------------------------


class EmbeddingError(IngestError):
    """The embedding model failed or returned an empty vector."""


class StoreError(IngestError):
    """A vector-store operation failed."""


class CollectionExistsError(StoreError):
    """``create_collection`` found the collection already present."""


# -- retries ------------------------------------------------------------------


class RetryError(IngestError):
    """Every attempt of a retried operation failed.

    The message embeds the last underlying error so a single log line is
    enough for manual reconciliation.
    """

    def __init__(self, label: str, attempts: int, last_error: BaseException) -> None:
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label} failed after {attempts} attempt(s): {last_error}")
