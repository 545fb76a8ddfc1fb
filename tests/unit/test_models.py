"""Unit tests for domain models, source loading and settings."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from rag_ingest.config import Settings
from rag_ingest.exceptions import ConfigError, DimensionMismatchError, FetchError, RetryError
from rag_ingest.models import (
    Chunk,
    CollectionDescriptor,
    DataSource,
    Progress,
    RawUnit,
    SourceKind,
    VectorRecord,
    load_sources,
)

# ── source declaration ─────────────────────────────────────────────────


class TestLoadSources:
    def _write(self, tmp_path: Path, payload: object) -> Path:
        path = tmp_path / "sources.json"
        path.write_text(json.dumps(payload) if not isinstance(payload, str) else payload)
        return path

    def test_loads_in_order(self, tmp_path: Path) -> None:
        path = self._write(
            tmp_path,
            [
                {"url": "https://api.test/spells/", "kind": "paginated-json", "name": "spells"},
                {"url": "https://rules.test/", "kind": "html", "name": "rules"},
                {"url": "https://docs.test/srd.pdf", "kind": "pdf", "name": "srd"},
            ],
        )

        sources = load_sources(path)

        assert [s.name for s in sources] == ["spells", "rules", "srd"]
        assert [s.kind for s in sources] == [SourceKind.PAGINATED_JSON, SourceKind.HTML, SourceKind.PDF]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_sources(tmp_path / "nope.json")

    def test_malformed_json(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not valid JSON"):
            load_sources(self._write(tmp_path, "[{"))

    def test_not_a_list(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="JSON list"):
            load_sources(self._write(tmp_path, {"url": "x"}))

    @pytest.mark.parametrize(
        "entry",
        [
            {"url": "https://x.test/", "kind": "rss", "name": "feed"},
            {"url": "", "kind": "html", "name": "empty"},
            {"kind": "html", "name": "no-url"},
        ],
    )
    def test_invalid_entry(self, tmp_path: Path, entry: dict) -> None:
        with pytest.raises(ConfigError, match="Invalid source #0"):
            load_sources(self._write(tmp_path, [entry]))

    def test_bundled_declaration_is_valid(self) -> None:
        path = Path(__file__).resolve().parents[2] / "data" / "sources.json"
        sources = load_sources(path)
        assert sources
        assert all(s.kind is SourceKind.PAGINATED_JSON for s in sources)


# ── models ─────────────────────────────────────────────────────────────


class TestModels:
    def test_data_source_is_frozen(self) -> None:
        source = DataSource(url="https://x.test/", kind=SourceKind.HTML, name="x")
        with pytest.raises(ValidationError):
            source.name = "y"  # type: ignore[misc]

    def test_progress_completed(self) -> None:
        assert Progress(source_url="u", last_processed_cursor=None, processed_item_count=3).completed
        assert not Progress(source_url="u", last_processed_cursor="u?offset=50", processed_item_count=50).completed
        # A source whose only page was empty is finished too.
        assert Progress(source_url="u", last_processed_cursor=None, processed_item_count=0).completed

    def test_progress_timestamp_is_utc(self) -> None:
        assert Progress(source_url="u").timestamp.tzinfo is not None

    def test_raw_unit_text(self) -> None:
        assert RawUnit(source_name="s", payload="plain", origin_url="u").as_text() == "plain"
        assert RawUnit(source_name="s", payload={"é": 1}, origin_url="u").as_text() == '{"é": 1}'

    def test_record_metadata(self) -> None:
        chunk = Chunk(text="t", source_name="monsters", origin_url="https://x.test/m/1", item_label="Goblin")
        record = VectorRecord.from_chunk(chunk, [0.5])

        assert record.metadata == {"type": "monsters", "url": "https://x.test/m/1", "name": "Goblin"}

    def test_record_metadata_without_label(self) -> None:
        chunk = Chunk(text="t", source_name="rules", origin_url="https://x.test/")
        assert VectorRecord.from_chunk(chunk, [0.5]).metadata == {"type": "rules", "url": "https://x.test/"}

    def test_record_id_is_deterministic(self) -> None:
        chunk = Chunk(text="t", source_name="s", origin_url="https://x.test/")
        first = VectorRecord.from_chunk(chunk, [0.1]).record_id()

        assert first == VectorRecord.from_chunk(chunk, [0.9]).record_id()
        other = Chunk(text="u", source_name="s", origin_url="https://x.test/")
        assert first != VectorRecord.from_chunk(other, [0.1]).record_id()

    def test_record_requires_text(self) -> None:
        with pytest.raises(ValidationError):
            VectorRecord(vector=[0.1], text="", metadata={})

    def test_descriptor_requires_positive_dimension(self) -> None:
        with pytest.raises(ValidationError):
            CollectionDescriptor(name="c", dimension=0)


# ── errors ─────────────────────────────────────────────────────────────


class TestErrors:
    def test_dimension_mismatch_is_config_error(self) -> None:
        err = DimensionMismatchError(1536, 384, context="collection 'lore'")
        assert isinstance(err, ConfigError)
        assert "384" in str(err) and "1536" in str(err)

    def test_fetch_error_transience(self) -> None:
        assert FetchError("x", url="u").transient
        assert not FetchError("x", url="u", permanent=True).transient

    def test_retry_error_message_carries_last_error(self) -> None:
        err = RetryError("embed item", 3, ValueError("quota"))
        assert str(err) == "embed item failed after 3 attempt(s): quota"


# ── settings ───────────────────────────────────────────────────────────


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.chunk_size == 512
        assert settings.chunk_overlap == 100
        assert settings.concurrency_limit == 5
        assert settings.fetch_max_attempts == 5

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONCURRENCY_LIMIT", "2")
        monkeypatch.setenv("PROGRESS_BACKEND", "sqlite")
        settings = Settings()
        assert settings.concurrency_limit == 2
        assert settings.progress_backend == "sqlite"

    def test_overlap_must_be_below_size(self) -> None:
        with pytest.raises(ValidationError):
            Settings(chunk_size=100, chunk_overlap=100)
