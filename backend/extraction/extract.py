"""
Extract Layer - Raw document to TextStream.

PDF text is captured page by page with pdfplumber. Column boundaries are
not preserved; later stages work on the line-oriented view.
"""
import io
import logging
from abc import ABC, abstractmethod

import pdfplumber

from .config import Config
from .errors import DocumentReadError, UnsupportedFileTypeError
from .schema import RawDocument, TextStream


class BaseParser(ABC):
    @abstractmethod
    def parse(self, document: RawDocument) -> TextStream:
        pass


class PDFParser(BaseParser):
    def parse(self, document: RawDocument) -> TextStream:
        pages = []
        logging.info(f"Extracting PDF text: {document.filename or '<upload>'}")
        try:
            with pdfplumber.open(io.BytesIO(document.content)) as pdf:
                for page in pdf.pages:
                    text = page.extract_text() or ""
                    pages.append(text.split("\n"))
        except Exception as e:
            raise DocumentReadError(f"Could not read PDF: {e}") from e

        stream = TextStream(pages=pages)
        if stream.is_empty():
            raise DocumentReadError("PDF contains no extractable text (scanned image?)")
        logging.info(f"PDF text captured: {len(pages)} pages, {len(stream.lines)} lines")
        return stream


class TextParser(BaseParser):
    # Share of undecodable or NUL characters above which the upload is binary
    MAX_GARBAGE_RATIO = 0.1

    def parse(self, document: RawDocument) -> TextStream:
        text = document.content.decode("utf-8", errors="replace")
        garbage = text.count("\ufffd") + text.count("\x00")
        if text and garbage > len(text) * self.MAX_GARBAGE_RATIO:
            raise DocumentReadError("Document is not readable text (binary content?)")
        stream = TextStream.from_text(text)
        if stream.is_empty():
            raise DocumentReadError("Document is empty")
        return stream


class ParserFactory:
    @staticmethod
    def get_parser(media_type: str) -> BaseParser:
        mt = (media_type or "").lower()
        if mt in Config.PDF_MEDIA_TYPES:
            return PDFParser()
        elif mt in Config.TEXT_MEDIA_TYPES:
            return TextParser()
        else:
            raise UnsupportedFileTypeError(media_type, Config.PDF_MEDIA_TYPES | Config.TEXT_MEDIA_TYPES)


def tokenize(document: RawDocument) -> TextStream:
    return ParserFactory.get_parser(document.media_type).parse(document)
