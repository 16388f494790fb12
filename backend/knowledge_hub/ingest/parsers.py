"""Document parsers for supported upload formats."""

from __future__ import annotations

import io
import re
from pathlib import PurePath

import docx
import fitz
import pptx

from knowledge_hub.core.errors import CorruptFile, UnsupportedFormat
from knowledge_hub.core.logging import get_logger
from knowledge_hub.ingest.types import ParsedFile
from knowledge_hub.utils.text import word_count

logger = get_logger(__name__)

_CUE_ID_RE = re.compile(r"^\d+$")
_INLINE_TAG_RE = re.compile(r"<[^>]+>")


def file_extension(filename: str) -> str:
    return PurePath(filename).suffix.lower().lstrip(".")


class BaseParser:
    """Common parser interface."""

    extensions: tuple[str, ...] = ()

    def can_parse(self, extension: str) -> bool:
        return extension in self.extensions

    def parse(self, data: bytes, filename: str) -> ParsedFile:  # pragma: no cover - interface
        raise NotImplementedError


class TextParser(BaseParser):
    extensions = ("txt", "md", "markdown")

    def parse(self, data: bytes, filename: str) -> ParsedFile:
        text = data.decode("utf-8", errors="ignore")
        return ParsedFile(text=text, word_count=word_count(text), extension=file_extension(filename))


class SubtitleParser(BaseParser):
    """WebVTT and SubRip cues flattened to a single line of speech."""

    extensions = ("vtt", "srt")

    def parse(self, data: bytes, filename: str) -> ParsedFile:
        text = extract_subtitle_text(data.decode("utf-8", errors="ignore"))
        return ParsedFile(text=text, word_count=word_count(text), extension=file_extension(filename))


class PDFParser(BaseParser):
    extensions = ("pdf",)

    def parse(self, data: bytes, filename: str) -> ParsedFile:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text("text", sort=True) for page in doc]
        if not pages:
            raise ValueError("PDF has no pages")
        text = "\n\n".join(pages)
        return ParsedFile(text=text, word_count=word_count(text), page_count=len(pages), extension="pdf")


class DocxParser(BaseParser):
    extensions = ("docx",)

    def parse(self, data: bytes, filename: str) -> ParsedFile:
        document = docx.Document(io.BytesIO(data))
        text = "\n".join(para.text for para in document.paragraphs)
        return ParsedFile(text=text, word_count=word_count(text), extension="docx")


class PptxParser(BaseParser):
    """Slide text (text frames and tables) in slide order, then speaker notes."""

    extensions = ("pptx",)

    def parse(self, data: bytes, filename: str) -> ParsedFile:
        presentation = pptx.Presentation(io.BytesIO(data))
        slides: list[str] = []
        notes: list[str] = []
        for slide in presentation.slides:
            parts: list[str] = []
            for shape in slide.shapes:
                if shape.has_text_frame:
                    parts.extend(_frame_lines(shape.text_frame))
                if shape.has_table:
                    for row in shape.table.rows:
                        cells = [cell.text.strip() for cell in row.cells]
                        if any(cells):
                            parts.append(" | ".join(cells))
            if parts:
                slides.append(" ".join(parts))
            if slide.has_notes_slide and slide.notes_slide.notes_text_frame is not None:
                note = " ".join(_frame_lines(slide.notes_slide.notes_text_frame))
                if note:
                    notes.append(note)
        text = "\n\n".join([*slides, *notes])
        return ParsedFile(
            text=text,
            word_count=word_count(text),
            page_count=len(presentation.slides),
            extension="pptx",
        )


class ParserRegistry:
    """Registry that selects an appropriate parser for a filename."""

    def __init__(self) -> None:
        self._parsers: list[BaseParser] = [
            TextParser(),
            SubtitleParser(),
            PDFParser(),
            DocxParser(),
            PptxParser(),
        ]

    def register(self, parser: BaseParser) -> None:
        self._parsers.append(parser)

    @property
    def supported_extensions(self) -> tuple[str, ...]:
        return tuple(ext for parser in self._parsers for ext in parser.extensions)

    def for_extension(self, extension: str) -> BaseParser | None:
        for parser in self._parsers:
            if parser.can_parse(extension):
                return parser
        return None

    def is_supported(self, filename: str) -> bool:
        return self.for_extension(file_extension(filename)) is not None

    def parse(self, data: bytes, filename: str) -> ParsedFile:
        extension = file_extension(filename)
        parser = self.for_extension(extension)
        if parser is None:
            raise UnsupportedFormat(extension, self.supported_extensions)
        try:
            return parser.parse(data, filename)
        except Exception as exc:
            logger.exception("Failed to parse %s", filename)
            raise CorruptFile(filename, str(exc) or exc.__class__.__name__) from exc


_DEFAULT_REGISTRY = ParserRegistry()


def parse_file(data: bytes, filename: str) -> ParsedFile:
    """Parse ``data`` according to the extension of ``filename``."""
    return _DEFAULT_REGISTRY.parse(data, filename)


def supported_extensions() -> tuple[str, ...]:
    return _DEFAULT_REGISTRY.supported_extensions


def is_supported(filename: str) -> bool:
    return _DEFAULT_REGISTRY.is_supported(filename)


def extract_subtitle_text(content: str) -> str:
    """Return cue text from a VTT/SRT body joined by single spaces.

    Drops the WEBVTT header, numeric cue identifiers, timestamp lines, and
    inline markup such as ``<v Speaker>``.
    """
    lines: list[str] = []
    in_cue = False
    for line in content.splitlines():
        stripped = line.strip()
        if stripped == "WEBVTT" or not stripped:
            in_cue = False
            continue
        if "-->" in stripped:
            in_cue = True
            continue
        if _CUE_ID_RE.match(stripped):
            continue
        if in_cue:
            cleaned = _INLINE_TAG_RE.sub("", stripped).replace("&nbsp;", " ").strip()
            if cleaned:
                lines.append(cleaned)
    return " ".join(lines)


def _frame_lines(frame) -> list[str]:
    lines = []
    for paragraph in frame.paragraphs:
        text = "".join(run.text for run in paragraph.runs).strip()
        if text:
            lines.append(text)
    return lines


__all__ = [
    "BaseParser",
    "TextParser",
    "SubtitleParser",
    "PDFParser",
    "DocxParser",
    "PptxParser",
    "ParserRegistry",
    "parse_file",
    "supported_extensions",
    "is_supported",
    "extract_subtitle_text",
    "file_extension",
]
