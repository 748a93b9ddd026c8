"""Text chunking with strategy selection and boundary preservation.

Splits extracted :class:`~src.models.rag.Element` lists into ordered
:class:`~src.models.rag.Chunk` objects sized for embedding models (~1000
characters with 200 characters of overlap by default).

Elements are joined with blank lines into one text.  Every strategy works
on character spans of that text, so each chunk is a verbatim slice of it:
``metadata.start_offset``/``end_offset`` locate the slice, and page, section
and element type are inherited from the element where the chunk's own
content starts (not where its overlap tail starts).

Strategies:

* **fixed** -- sliding window of N characters, end snapped to whitespace
  within a short lookahead (or back to the last whitespace in the window),
  overlap capped at half the window so the start always advances.
* **semantic** -- greedy paragraph accumulation.  A chunk's size is the length
  of its span; only the separator joining the next paragraph is left
  uncounted, so a chunk can exceed N by that one separator.  The next chunk
  opens with a tail of the previous one: its last two sentences if they fit
  in the overlap budget, otherwise the last O characters starting on a word
  boundary.
  Oversized paragraphs are split at sentence boundaries (abbreviation
  aware), oversized sentences at line breaks; a single line longer than N
  is emitted unsplit.
* **markdown** -- one chunk per heading section; oversized sections fall
  back to semantic accumulation.
* **code** -- packs top-level declaration blocks into N/2 windows;
  oversized blocks fall back to line accumulation carrying the last three
  lines forward.
"""

from __future__ import annotations

import bisect
import re
import uuid
from typing import NamedTuple

import structlog

from src.models.config import ChunkingConfig, ChunkingStrategy
from src.models.content import ContentKind
from src.models.rag import Chunk, ChunkMetadata, Element

logger = structlog.get_logger(logger_name=__name__)

# Common abbreviations that should NOT trigger a sentence split.
# "Dr. Smith" should remain one sentence, not split at the period.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "Vol",
        "No",
        "vs",
        "etc",
        "approx",
        "e.g",
        "i.e",
        "Fig",
        "Inc",
        "Ltd",
        "Co",
    }
)

_ELEMENT_SEPARATOR = "\n\n"
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
_SENTENCE_END = re.compile(r"[.!?](?:\s|$)")
_MARKDOWN_HEADING = re.compile(r"^#{1,6}[ \t]+\S.*$", re.MULTILINE)
_CODE_FENCE = "```"
_CODE_DECLARATION = re.compile(
    r"^(?:export[ \t]+|pub[ \t]+)?"
    r"(?:async[ \t]+def|def|class|function|const|let|var|import|from|fn|func|interface|struct|impl)"
    r"\b",
    re.MULTILINE,
)
# Number of top-level declarations that marks a text as source code.
_CODE_SIGNATURE_MIN = 2


class _Span(NamedTuple):
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


class _Piece(NamedTuple):
    """A chunk-to-be: text[start:end], whose own content begins at *anchor*."""

    start: int
    end: int
    anchor: int


class TextChunker:
    """Splits extracted elements into ordered chunks.

    Parameters
    ----------
    config:
        Chunk size, overlap, snap lookahead and default strategy.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or ChunkingConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        elements: list[Element],
        document_id: str,
        strategy: ChunkingStrategy | None = None,
        kind: ContentKind | None = None,
        config: ChunkingConfig | None = None,
    ) -> list[Chunk]:
        """Split *elements* into chunks for *document_id*.

        Parameters
        ----------
        elements:
            Extracted elements in reading order.
        document_id:
            Owner of the produced chunks.
        strategy:
            Overrides the configured strategy.  ``AUTO`` inspects the text.
        kind:
            Content kind of the upload; a hint for ``AUTO``.
        config:
            Per-call override of the chunking configuration.

        Returns
        -------
        list[Chunk]
            Chunks with positions ``0..n-1``.  Empty input returns ``[]``.
        """
        config = config or self._config
        text, starts = self._join_elements(elements)
        if not text.strip():
            return []

        resolved = strategy or config.strategy
        if resolved == ChunkingStrategy.AUTO:
            resolved = self.detect_strategy(text, kind)

        pieces = self._split(text, resolved, config)
        headings = self._heading_index(text, elements, starts)

        chunks: list[Chunk] = []
        for piece in pieces:
            content = text[piece.start : piece.end]
            if not content.strip():
                continue
            element = elements[max(bisect.bisect_right(starts, piece.anchor) - 1, 0)]
            chunks.append(
                Chunk(
                    id=str(uuid.uuid4()),
                    document_id=document_id,
                    content=content,
                    position=len(chunks),
                    metadata=ChunkMetadata(
                        section=self._section_at(headings, piece.anchor),
                        page_number=element.page_number,
                        element_type=element.type,
                        start_offset=piece.start,
                        end_offset=piece.end,
                    ),
                )
            )

        logger.debug(
            "chunking_complete",
            document_id=document_id,
            strategy=resolved.value,
            num_chunks=len(chunks),
            text_length=len(text),
        )
        return chunks

    def detect_strategy(self, text: str, kind: ContentKind | None = None) -> ChunkingStrategy:
        """Pick a strategy from the content kind, then from content signatures."""
        if kind == ContentKind.CODE:
            return ChunkingStrategy.CODE
        if kind == ContentKind.MARKDOWN:
            return ChunkingStrategy.MARKDOWN
        if _CODE_FENCE in text or len(_CODE_DECLARATION.findall(text)) >= _CODE_SIGNATURE_MIN:
            return ChunkingStrategy.CODE
        if _MARKDOWN_HEADING.search(text):
            return ChunkingStrategy.MARKDOWN
        return ChunkingStrategy.SEMANTIC

    @staticmethod
    def join_elements(elements: list[Element]) -> str:
        """Return the text that chunk offsets refer to."""
        return _ELEMENT_SEPARATOR.join(e.text for e in elements)

    # ------------------------------------------------------------------
    # Strategy dispatch
    # ------------------------------------------------------------------

    def _split(self, text: str, strategy: ChunkingStrategy, config: ChunkingConfig) -> list[_Piece]:
        size = config.chunk_size
        overlap = config.chunk_overlap
        if strategy == ChunkingStrategy.FIXED:
            return self._split_fixed(text, size, overlap, config.snap_lookahead)
        if strategy == ChunkingStrategy.MARKDOWN:
            return self._split_markdown(text, size, overlap)
        if strategy == ChunkingStrategy.CODE:
            return self._split_code(text, max(size // 2, 1), config.code_tail_lines)
        whole = self._strip(text, 0, len(text))
        if whole is None:
            return []
        return self._accumulate(text, self._units(text, whole, size), size, overlap)

    # ------------------------------------------------------------------
    # fixed
    # ------------------------------------------------------------------

    @staticmethod
    def _split_fixed(text: str, size: int, overlap: int, lookahead: int) -> list[_Piece]:
        length = len(text)
        # Capping the overlap at half the window, and refusing back-snaps that
        # would shrink the window below three quarters, guarantees every step
        # advances the start by at least a quarter window.
        step_overlap = min(overlap, size // 2)
        min_window = max((size * 3) // 4, 1)

        pieces: list[_Piece] = []
        start = 0
        while start < length:
            end = min(start + size, length)
            if end < length:
                end = TextChunker._snap(text, start, end, lookahead, min_window)
            pieces.append(_Piece(start, end, start))
            if end >= length:
                break
            next_start = end - step_overlap
            start = next_start if next_start > start else end
        return pieces

    @staticmethod
    def _snap(text: str, start: int, end: int, lookahead: int, min_window: int) -> int:
        limit = min(end + lookahead, len(text))
        for i in range(end, limit):
            if text[i].isspace():
                return i
        for i in range(end - 1, start + min_window - 1, -1):
            if text[i].isspace():
                return i
        return end

    # ------------------------------------------------------------------
    # semantic
    # ------------------------------------------------------------------

    def _accumulate(
        self, text: str, units: list[_Span], size: int, overlap: int
    ) -> list[_Piece]:
        """Greedy accumulation of *units* into pieces with an overlap tail.

        This is the core chunking loop.  It packs units into the current
        piece until adding the next would exceed *size*, then flushes and
        opens the next piece with a tail of the one just flushed.
        """
        pieces: list[_Piece] = []
        current: list[_Span] = []
        current_size = 0
        tail_start: int | None = None

        for unit in units:
            if current and current_size + unit.length > size:
                region = _Span(current[0].start, current[-1].end)
                opened = region.start if tail_start is None else tail_start
                pieces.append(_Piece(opened, region.end, region.start))
                # The tail must leave room for the unit that opens the next piece.
                tail_start = self._tail_start(text, region, min(overlap, size - unit.length))
                current = []

            current.append(unit)
            opened = current[0].start if tail_start is None else tail_start
            current_size = unit.end - opened

        if current:
            region = _Span(current[0].start, current[-1].end)
            opened = region.start if tail_start is None else tail_start
            pieces.append(_Piece(opened, region.end, region.start))
        return pieces

    def _tail_start(self, text: str, region: _Span, budget: int) -> int | None:
        """Offset where the overlap tail of *region* starts, or None for no tail."""
        if budget <= 0:
            return None

        sentences = self._sentence_spans(text, region)
        if sentences:
            candidate = sentences[-2].start if len(sentences) >= 2 else sentences[-1].start
            if region.end - candidate <= budget:
                return candidate

        start = max(region.end - budget, region.start)
        # Do not open the tail mid-word.
        if start > region.start:
            while start < region.end and not text[start - 1].isspace():
                start += 1
        while start < region.end and text[start].isspace():
            start += 1
        return start if start < region.end else None

    def _units(self, text: str, span: _Span, size: int) -> list[_Span]:
        """Paragraphs of *span*, with oversized ones broken into sentences, then lines."""
        units: list[_Span] = []
        for paragraph in self._paragraph_spans(text, span):
            if paragraph.length <= size:
                units.append(paragraph)
                continue
            for sentence in self._sentence_spans(text, paragraph):
                if sentence.length <= size:
                    units.append(sentence)
                else:
                    units.extend(self._line_spans(text, sentence))
        return units

    # ------------------------------------------------------------------
    # markdown
    # ------------------------------------------------------------------

    def _split_markdown(self, text: str, size: int, overlap: int) -> list[_Piece]:
        boundaries = [m.start() for m in _MARKDOWN_HEADING.finditer(text)]
        if not boundaries or boundaries[0] != 0:
            boundaries.insert(0, 0)
        boundaries.append(len(text))

        pieces: list[_Piece] = []
        for start, end in zip(boundaries, boundaries[1:]):
            section = self._strip(text, start, end)
            if section is None:
                continue
            if section.length <= size:
                pieces.append(_Piece(section.start, section.end, section.start))
            else:
                units = self._units(text, section, size)
                pieces.extend(self._accumulate(text, units, size, overlap))
        return pieces

    # ------------------------------------------------------------------
    # code
    # ------------------------------------------------------------------

    def _split_code(self, text: str, size: int, tail_lines: int) -> list[_Piece]:
        boundaries = [m.start() for m in _CODE_DECLARATION.finditer(text)]
        if not boundaries or boundaries[0] != 0:
            boundaries.insert(0, 0)
        boundaries.append(len(text))

        pieces: list[_Piece] = []
        packed: list[_Span] = []
        packed_size = 0

        def flush() -> None:
            nonlocal packed, packed_size
            if packed:
                pieces.append(_Piece(packed[0].start, packed[-1].end, packed[0].start))
            packed = []
            packed_size = 0

        for start, end in zip(boundaries, boundaries[1:]):
            block = self._strip(text, start, end)
            if block is None:
                continue
            if block.length > size:
                flush()
                pieces.extend(self._accumulate_lines(text, block, size, tail_lines))
                continue
            if packed and packed_size + block.length > size:
                flush()
            packed.append(block)
            packed_size = block.end - packed[0].start
        flush()
        return pieces

    def _accumulate_lines(
        self, text: str, block: _Span, size: int, tail_lines: int
    ) -> list[_Piece]:
        pieces: list[_Piece] = []
        current: list[_Span] = []
        current_size = 0
        carried: list[_Span] = []

        for line in self._line_spans(text, block):
            if current and current_size + line.length > size:
                opened = (carried or current)[0].start
                pieces.append(_Piece(opened, current[-1].end, current[0].start))
                carried = current[-tail_lines:] if tail_lines else []
                while carried and carried[-1].end - carried[0].start + line.length > size:
                    carried = carried[1:]
                current = []
            current.append(line)
            current_size = line.end - (carried or current)[0].start

        if current:
            opened = (carried or current)[0].start
            pieces.append(_Piece(opened, current[-1].end, current[0].start))
        return pieces

    # ------------------------------------------------------------------
    # Span helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _strip(text: str, start: int, end: int) -> _Span | None:
        while start < end and text[start].isspace():
            start += 1
        while end > start and text[end - 1].isspace():
            end -= 1
        return _Span(start, end) if start < end else None

    def _paragraph_spans(self, text: str, span: _Span) -> list[_Span]:
        spans: list[_Span] = []
        pos = span.start
        for match in _PARAGRAPH_BREAK.finditer(text, span.start, span.end):
            stripped = self._strip(text, pos, match.start())
            if stripped is not None:
                spans.append(stripped)
            pos = match.end()
        stripped = self._strip(text, pos, span.end)
        if stripped is not None:
            spans.append(stripped)
        return spans

    def _sentence_spans(self, text: str, span: _Span) -> list[_Span]:
        """Sentence spans inside *span*, respecting abbreviations.

        Handles ``.``, ``!``, ``?`` followed by whitespace or the end of the
        span.  Periods after known abbreviations are masked with ``\\x00``
        first (same length, so indices stay aligned with *text*).
        """
        segment = text[span.start : span.end]
        masked = segment
        for abbr in _ABBREVIATIONS:
            masked = masked.replace(f"{abbr}.", f"{abbr}\x00")

        spans: list[_Span] = []
        last = 0
        for match in _SENTENCE_END.finditer(masked):
            stripped = self._strip(text, span.start + last, span.start + match.end())
            if stripped is not None:
                spans.append(stripped)
            last = match.end()
        # Trailing text that didn't end with punctuation.
        stripped = self._strip(text, span.start + last, span.end)
        if stripped is not None:
            spans.append(stripped)
        return spans

    def _line_spans(self, text: str, span: _Span) -> list[_Span]:
        spans: list[_Span] = []
        pos = span.start
        while pos < span.end:
            newline = text.find("\n", pos, span.end)
            line_end = span.end if newline == -1 else newline
            # Keep leading indentation; only trailing whitespace is dropped.
            end = line_end
            while end > pos and text[end - 1].isspace():
                end -= 1
            if end > pos and text[pos:end].strip():
                spans.append(_Span(pos, end))
            pos = line_end + 1
        return spans

    # ------------------------------------------------------------------
    # Element / section lookup
    # ------------------------------------------------------------------

    @staticmethod
    def _join_elements(elements: list[Element]) -> tuple[str, list[int]]:
        starts: list[int] = []
        offset = 0
        for element in elements:
            starts.append(offset)
            offset += len(element.text) + len(_ELEMENT_SEPARATOR)
        return TextChunker.join_elements(elements), starts

    @staticmethod
    def _heading_index(
        text: str, elements: list[Element], starts: list[int]
    ) -> list[tuple[int, str]]:
        headings: dict[int, str] = {}
        for element, start in zip(elements, starts):
            if element.type == "Title":
                headings[start] = element.text
        for match in _MARKDOWN_HEADING.finditer(text):
            headings[match.start()] = match.group(0)
        return sorted(
            (pos, title.lstrip("#").strip()) for pos, title in headings.items()
        )

    @staticmethod
    def _section_at(headings: list[tuple[int, str]], anchor: int) -> str | None:
        index = bisect.bisect_right(headings, (anchor, "\U0010ffff")) - 1
        return headings[index][1] if index >= 0 else None
