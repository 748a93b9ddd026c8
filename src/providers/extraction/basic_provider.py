"""Last-resort extraction that never calls an external service.

Always available, so the extraction chain can always produce something.
It handles:

* text-like kinds: decoded as UTF-8 (falling back to cp1252), HTML and XML
  markup removed with BeautifulSoup;
* PDF: a minimal content-stream reader (FlateDecode via zlib, ``Tj``/``TJ``
  string operators) good enough for simple generated PDFs;
* images: a placeholder element naming the file;
* anything else: decoded if it looks like text, otherwise rejected.
"""

from __future__ import annotations

import re
import zlib
from collections.abc import Callable

from bs4 import BeautifulSoup

from src.interfaces.extraction_method import IExtractionMethod
from src.models.content import TEXT_LIKE_KINDS, ContentKind
from src.models.rag import Element
from src.utils.errors import ExtractionError
from src.utils.logging import get_logger
from src.utils.text_segmentation import paragraph_elements

_MARKUP_NOISE = ["script", "style", "noscript", "template"]
_HTML_BLOCKS = ["p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "tr", "section", "pre"]

_PDF_STREAM = re.compile(rb"stream\r?\n(.*?)\r?\nendstream", re.DOTALL)
_PDF_TEXT_OP = re.compile(rb"\((?:\\.|[^\\)])*\)\s*Tj|\[(?:\\.|[^\]])*\]\s*TJ|T\*|ET|Td|TD")
_PDF_STRING = re.compile(rb"\(((?:\\.|[^\\)])*)\)")
_PDF_ESCAPES = {b"n": "\n", b"r": "\r", b"t": "\t", b"b": "\b", b"f": "\f"}

# Share of printable characters required to treat unknown bytes as text.
_PRINTABLE_RATIO = 0.9


class BasicExtractor(IExtractionMethod):
    """Decode uploads in process; the chain's final fallback."""

    def __init__(self) -> None:
        self._readers: dict[ContentKind, Callable[[bytes, str], list[Element]]] = {
            ContentKind.HTML: self._read_html,
            ContentKind.XML: self._read_xml,
            ContentKind.PDF: self._read_pdf,
            ContentKind.IMAGE: self._read_image,
            ContentKind.UNSUPPORTED: self._read_unknown,
        }
        self._logger = get_logger(__name__)

    async def extract(self, data: bytes, filename: str, kind: ContentKind) -> list[Element]:
        if not data:
            raise ExtractionError(message=f"{filename} is empty", provider_name="basic")
        reader = self._readers.get(kind, self._read_text)
        elements = reader(data, filename)
        self._logger.debug(
            "basic_extracted", filename=filename, kind=kind.value, element_count=len(elements)
        )
        return elements

    def supports(self, kind: ContentKind) -> bool:
        return kind in TEXT_LIKE_KINDS or kind in self._readers

    def get_method_name(self) -> str:
        return "basic"

    def is_available(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(data: bytes) -> str:
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError:
            return data.decode("cp1252", errors="replace")

    def _read_text(self, data: bytes, filename: str) -> list[Element]:
        return paragraph_elements(self._decode(data))

    def _read_html(self, data: bytes, filename: str) -> list[Element]:
        soup = BeautifulSoup(self._decode(data), "html.parser")
        for tag in soup(_MARKUP_NOISE):
            tag.decompose()
        for br in soup.find_all("br"):
            br.replace_with("\n")
        for block in soup.find_all(_HTML_BLOCKS):
            block.insert_after("\n\n")
        return paragraph_elements(_collapse_spaces(soup.get_text()))

    def _read_xml(self, data: bytes, filename: str) -> list[Element]:
        # Every text node on its own line; blank lines between paragraphs survive.
        soup = BeautifulSoup(self._decode(data), "html.parser")
        return paragraph_elements(_collapse_spaces(soup.get_text("\n")))

    @staticmethod
    def _read_image(data: bytes, filename: str) -> list[Element]:
        return [Element(text=f"Image: {filename}", type="Image")]

    def _read_unknown(self, data: bytes, filename: str) -> list[Element]:
        sample = self._decode(data[:4096])
        printable = sum(1 for ch in sample if ch.isprintable() or ch in "\n\r\t")
        if not sample or printable / len(sample) < _PRINTABLE_RATIO:
            raise ExtractionError(
                message=f"{filename} is binary content of an unsupported type",
                provider_name="basic",
            )
        return self._read_text(data, filename)

    @staticmethod
    def _read_pdf(data: bytes, filename: str) -> list[Element]:
        pieces: list[str] = []
        for match in _PDF_STREAM.finditer(data):
            raw = match.group(1)
            try:
                content = zlib.decompress(raw)
            except zlib.error:
                content = raw
            pieces.append(_pdf_stream_text(content))
        text = "\n".join(p for p in pieces if p.strip())
        if not text.strip():
            raise ExtractionError(
                message=f"No text operators found in {filename}", provider_name="basic"
            )
        return paragraph_elements(text)


def _collapse_spaces(text: str) -> str:
    # Collapse horizontal whitespace but keep the paragraph breaks.
    return "\n".join(" ".join(line.split()) for line in text.split("\n"))


def _pdf_unescape(raw: bytes) -> str:
    out: list[str] = []
    i = 0
    while i < len(raw):
        byte = raw[i : i + 1]
        if byte != b"\\":
            out.append(byte.decode("latin-1"))
            i += 1
            continue
        nxt = raw[i + 1 : i + 2]
        if nxt in _PDF_ESCAPES:
            out.append(_PDF_ESCAPES[nxt])
            i += 2
        elif nxt.isdigit():
            octal = re.match(rb"[0-7]{1,3}", raw[i + 1 : i + 4])
            digits = octal.group(0) if octal else b"0"
            out.append(chr(int(digits, 8)))
            i += 1 + len(digits)
        else:
            # \( \) \\ and unknown escapes keep the escaped character.
            out.append(nxt.decode("latin-1"))
            i += 2
    return "".join(out)


def _pdf_stream_text(content: bytes) -> str:
    parts: list[str] = []
    for op in _PDF_TEXT_OP.finditer(content):
        token = op.group(0)
        if token.endswith(b"Tj") or token.endswith(b"TJ"):
            parts.append("".join(_pdf_unescape(s) for s in _PDF_STRING.findall(token)))
        elif token == b"ET":
            parts.append("\n\n")
        else:
            parts.append("\n")
    return "".join(parts)
