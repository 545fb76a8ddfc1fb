"""Fixed-window text chunking."""

from __future__ import annotations

from typing import Any

from langchain_text_splitters import TextSplitter

from rag_ingest.models import Chunk, RawUnit


class FixedWindowTextSplitter(TextSplitter):
    """Split text into windows of ``chunk_size`` characters.

    Consecutive windows share exactly ``chunk_overlap`` characters, so
    dropping the first ``chunk_overlap`` characters of every chunk but the
    first and concatenating the rest gives back the input unchanged. Only
    the last window may be shorter than ``chunk_size``.
    """

    def __init__(self, chunk_size: int = 512, chunk_overlap: int = 100, **kwargs: Any) -> None:
        kwargs.setdefault("strip_whitespace", False)
        super().__init__(chunk_size=chunk_size, chunk_overlap=chunk_overlap, **kwargs)

    def split_text(self, text: str) -> list[str]:
        size = self._chunk_size
        stride = size - self._chunk_overlap
        chunks: list[str] = []
        start = 0
        while start < len(text):
            chunks.append(text[start : start + size])
            if start + size >= len(text):
                break
            start += stride
        return chunks


class Chunker:
    """Turn :class:`RawUnit` objects into :class:`Chunk` objects.

    Parameters
    ----------
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Number of characters shared by consecutive chunks.
    """

    def __init__(self, chunk_size: int = 512, chunk_overlap: int = 100) -> None:
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._splitter = FixedWindowTextSplitter(chunk_size, chunk_overlap)

    def split(self, text: str) -> list[str]:
        return self._splitter.split_text(text)

    def chunk(self, unit: RawUnit) -> list[Chunk]:
        """Split *unit* and attach its provenance to every piece.

        Whitespace-only windows are dropped: a stored record must carry
        some text.
        """
        return [
            Chunk(
                text=piece,
                source_name=unit.source_name,
                origin_url=unit.origin_url,
                item_label=unit.item_label,
            )
            for piece in self.split(unit.as_text())
            if piece.strip()
        ]
