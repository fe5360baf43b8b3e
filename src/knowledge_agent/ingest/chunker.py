"""Fixed, semantic and markdown-aware chunking implementation."""

from __future__ import annotations

import re

from knowledge_agent.config import ChunkingConfig
from knowledge_agent.types import Chunk, ChunkStrategy

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_END = re.compile(r"[.!?]+\s+")
_REPEATED_CHAR = re.compile(r"(.)\1*", flags=re.DOTALL)
_CODE_FENCE = re.compile(r"```.*?```", flags=re.DOTALL)
_HEADER_LINE = re.compile(r"^#{1,6}[ \t]+\S.*$", flags=re.MULTILINE)


class SemanticChunker:
    """Splits oversized text into bounded chunks using one of three strategies.

    Strategies:
    1. `fixed`
       A window of `max_size` characters slides over the text. With a non-zero
       `overlap` the stride is `max_size - overlap`, so consecutive windows share
       `overlap` characters. With zero overlap, concatenating the chunks yields
       the source text.

    2. `semantic`
       Paragraphs (blank-line separated) are emitted one per chunk when they all
       fit. Otherwise paragraph breaks and sentence ends become candidate
       boundaries and the segments between them are packed greedily. A closed
       chunk seeds the next one with its trailing `overlap` characters, shortened
       when needed so the seeded chunk still fits. Segments that are larger than
       `max_size` on their own are sliced with fixed windows. Text without any
       boundary falls back to `fixed`.

    3. `markdown`
       With `preserve_code_blocks`, fenced code blocks are atomic chunks and
       the prose around them is chunked semantically. Otherwise the text is cut
       into header-led sections (`#` .. `######`) and oversized sections are
       chunked semantically.

    Every chunk records its offsets into the source text; `index` and
    `total_chunks_in_batch` are assigned once the whole batch is known.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk(self, text: str, strategy: ChunkStrategy | None = None) -> list[Chunk]:
        if not text or not text.strip():
            return []

        strategy = strategy or self.config.strategy
        if len(text) <= self.config.max_size:
            chunks = [Chunk(text, 0, 0, len(text), strategy)]
        elif strategy is ChunkStrategy.FIXED:
            chunks = self._chunk_fixed(text, 0)
        elif strategy is ChunkStrategy.MARKDOWN:
            chunks = self._chunk_markdown(text)
        else:
            chunks = self._chunk_semantic(text, 0)

        for index, chunk in enumerate(chunks):
            chunk.index = index
            chunk.total_chunks_in_batch = len(chunks)
        return chunks

    def _chunk_fixed(self, text: str, base: int) -> list[Chunk]:
        max_size = self.config.max_size
        overlap = self.config.overlap
        stride = max_size - overlap
        chunks: list[Chunk] = []
        pos = 0

        while pos < len(text):
            end = min(pos + max_size, len(text))
            chunks.append(
                Chunk(
                    content=text[pos:end],
                    index=len(chunks),
                    start_offset=base + pos,
                    end_offset=base + end,
                    strategy_used=ChunkStrategy.FIXED,
                    has_overlap_with_previous=overlap > 0 and pos > 0,
                )
            )
            if end >= len(text):
                break
            pos += stride

        return chunks

    def _chunk_semantic(self, text: str, base: int) -> list[Chunk]:
        if not text.strip():
            return []
        if len(text) <= self.config.max_size:
            start, end = _strip_span(text, 0, len(text))
            return [Chunk(text[start:end], 0, base + start, base + end, ChunkStrategy.SEMANTIC)]

        paragraphs = self._paragraph_spans(text)
        if paragraphs and all(end - start <= self.config.max_size for start, end in paragraphs):
            return [
                Chunk(text[start:end], i, base + start, base + end, ChunkStrategy.SEMANTIC)
                for i, (start, end) in enumerate(paragraphs)
            ]

        boundaries = self._boundaries(text)
        if not boundaries or _REPEATED_CHAR.fullmatch(text):
            return self._chunk_fixed(text, base)
        return self._pack_segments(text, boundaries, base)

    def _pack_segments(self, text: str, boundaries: list[int], base: int) -> list[Chunk]:
        max_size = self.config.max_size
        cuts = [0, *boundaries, len(text)]
        chunks: list[Chunk] = []
        start: int | None = None
        end = 0
        overlapped = False

        for seg_start, seg_end in zip(cuts, cuts[1:]):
            seg_len = seg_end - seg_start

            if seg_len > max_size:
                if start is not None:
                    self._emit(chunks, text, start, end, base, overlapped)
                    start = None
                chunks.extend(self._chunk_fixed(text[seg_start:seg_end], base + seg_start))
                continue

            if start is None:
                start, end, overlapped = seg_start, seg_end, False
                continue

            if seg_end - start <= max_size:
                end = seg_end
                continue

            self._emit(chunks, text, start, end, base, overlapped)
            seed = min(self.config.overlap, max_size - seg_len, end - start)
            if seed > 0:
                start, overlapped = end - seed, True
            else:
                start, overlapped = seg_start, False
            end = seg_end

        if start is not None:
            self._emit(chunks, text, start, end, base, overlapped)
        return chunks

    def _chunk_markdown(self, text: str) -> list[Chunk]:
        if not self.config.preserve_code_blocks:
            return self._chunk_sections(text)

        chunks: list[Chunk] = []
        pos = 0
        for match in _CODE_FENCE.finditer(text):
            chunks.extend(self._chunk_semantic(text[pos : match.start()], pos))
            chunks.append(
                Chunk(match.group(0), 0, match.start(), match.end(), ChunkStrategy.MARKDOWN)
            )
            pos = match.end()
        chunks.extend(self._chunk_semantic(text[pos:], pos))
        return chunks

    def _chunk_sections(self, text: str) -> list[Chunk]:
        headers = [match.start() for match in _HEADER_LINE.finditer(text)]
        if not headers:
            return self._chunk_semantic(text, 0)

        starts = headers if headers[0] == 0 else [0, *headers]
        chunks: list[Chunk] = []
        for section_start, section_end in zip(starts, [*starts[1:], len(text)]):
            start, end = _strip_span(text, section_start, section_end)
            if start == end:
                continue
            if end - start <= self.config.max_size:
                chunks.append(Chunk(text[start:end], 0, start, end, ChunkStrategy.MARKDOWN))
            else:
                chunks.extend(self._chunk_semantic(text[start:end], start))
        return chunks

    @staticmethod
    def _emit(
        chunks: list[Chunk], text: str, start: int, end: int, base: int, overlapped: bool
    ) -> None:
        start, end = _strip_span(text, start, end)
        if start == end:
            return
        chunks.append(
            Chunk(
                content=text[start:end],
                index=len(chunks),
                start_offset=base + start,
                end_offset=base + end,
                strategy_used=ChunkStrategy.SEMANTIC,
                has_overlap_with_previous=overlapped,
            )
        )

    @staticmethod
    def _paragraph_spans(text: str) -> list[tuple[int, int]]:
        spans: list[tuple[int, int]] = []
        pos = 0
        for match in _PARAGRAPH_BREAK.finditer(text):
            spans.append((pos, match.start()))
            pos = match.end()
        spans.append((pos, len(text)))

        stripped = [_strip_span(text, start, end) for start, end in spans]
        return [(start, end) for start, end in stripped if start < end]

    @staticmethod
    def _boundaries(text: str) -> list[int]:
        positions = {match.end() for match in _PARAGRAPH_BREAK.finditer(text)}
        positions.update(match.end() for match in _SENTENCE_END.finditer(text))
        return sorted(pos for pos in positions if 0 < pos < len(text))


def _strip_span(text: str, start: int, end: int) -> tuple[int, int]:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end
