"""
PDF text extraction for CAS statements.

This module turns a statement PDF, on disk or in memory, into the
newline-delimited text the ledger pipeline consumes, using pdfplumber.
"""

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

import pdfplumber

from cas_ledger.exceptions import DocumentError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


@dataclass
class PageContent:
    """
    Represents extracted content from a single PDF page.

    Attributes:
        page_number: 1-indexed page number
        lines: List of text lines extracted from the page
        raw_text: Complete raw text of the page
    """
    page_number: int
    lines: List[str] = field(default_factory=list)
    raw_text: str = ""


@dataclass
class ExtractedDocument:
    """
    Represents the complete extracted content from a PDF document.

    Attributes:
        pages: List of page contents
        total_pages: Total number of pages in the document
        source_path: Path to the source PDF file, if read from disk
    """
    pages: List[PageContent] = field(default_factory=list)
    total_pages: int = 0
    source_path: Optional[str] = None

    def get_all_lines(self) -> List[str]:
        """Get all lines from all pages as a flat list."""
        all_lines = []
        for page in self.pages:
            all_lines.extend(page.lines)
        return all_lines

    def get_all_text(self) -> str:
        """Get the cleaned lines of every page joined by newlines."""
        return "\n".join(self.get_all_lines())


class PDFExtractor:
    """
    Extracts text content from statement PDFs.

    Simple extraction is tried first since it keeps character sequences
    intact; layout-aware extraction is the fallback for sparse pages.
    """

    def __init__(self, password: Optional[str] = None):
        """
        Initialize the PDF extractor.

        Args:
            password: Optional password for encrypted PDFs.
        """
        self.password = password

    def extract(self, pdf_path: Union[str, Path]) -> ExtractedDocument:
        """
        Extract text content from a PDF file.

        Args:
            pdf_path: Path to the PDF file.

        Returns:
            ExtractedDocument containing all extracted text.

        Raises:
            DocumentError: If the file is missing, not a PDF, or unreadable.
        """
        pdf_path = Path(pdf_path)

        if not pdf_path.exists():
            raise DocumentError(f"PDF file not found: {pdf_path}", "DOCUMENT_NOT_FOUND")

        if not pdf_path.suffix.lower() == ".pdf":
            raise DocumentError(f"File is not a PDF: {pdf_path}", "NOT_A_PDF")

        logger.info(f"Extracting text from PDF: {pdf_path}")
        with open(pdf_path, "rb") as handle:
            document = self._extract_stream(handle)
        document.source_path = str(pdf_path)
        return document

    def extract_bytes(self, data: bytes) -> ExtractedDocument:
        """
        Extract text content from an in-memory PDF.

        Args:
            data: Raw PDF bytes.

        Returns:
            ExtractedDocument containing all extracted text.

        Raises:
            DocumentError: If the bytes are not a readable PDF.
        """
        if not data or not data.lstrip()[:4].startswith(PDF_MAGIC):
            raise DocumentError("Data is not a PDF document", "NOT_A_PDF")
        return self._extract_stream(io.BytesIO(data))

    def _extract_stream(self, stream: BinaryIO) -> ExtractedDocument:
        document = ExtractedDocument()
        try:
            with pdfplumber.open(stream, password=self.password) as pdf:
                document.total_pages = len(pdf.pages)
                logger.info(f"PDF has {document.total_pages} pages")

                for page_num, page in enumerate(pdf.pages, start=1):
                    page_content = self._extract_page(page, page_num)
                    document.pages.append(page_content)
                    logger.debug(
                        f"Page {page_num}: extracted {len(page_content.lines)} lines"
                    )
        except DocumentError:
            raise
        except Exception as e:
            logger.error(f"Failed to extract PDF: {e}")
            raise DocumentError(f"PDF could not be read: {e}", "UNREADABLE_DOCUMENT") from e

        if not document.get_all_lines():
            raise DocumentError("PDF contains no extractable text", "EMPTY_DOCUMENT")

        return document

    def _extract_page(self, page, page_number: int) -> PageContent:
        """
        Extract text from a single PDF page.

        Args:
            page: pdfplumber page object.
            page_number: 1-indexed page number.

        Returns:
            PageContent with extracted lines and raw text.
        """
        content = PageContent(page_number=page_number)
        raw_text = None

        try:
            raw_text = page.extract_text(x_tolerance=2, y_tolerance=2)
        except Exception as e:
            logger.debug(f"Simple extraction failed: {e}")

        if not raw_text or len(raw_text.strip()) < 100:
            try:
                raw_text_layout = page.extract_text(layout=True, x_tolerance=3, y_tolerance=3)
                if raw_text_layout and len(raw_text_layout) > len(raw_text or ""):
                    raw_text = raw_text_layout
            except Exception as e:
                logger.debug(f"Layout extraction failed: {e}")

        if raw_text:
            content.raw_text = raw_text
            content.lines = self._clean_lines(raw_text.split("\n"))
        else:
            logger.warning(f"No text extracted from page {page_number}")

        return content

    def _clean_lines(self, lines: List[str]) -> List[str]:
        """
        Normalize whitespace and drop empty lines.

        Args:
            lines: Raw lines from PDF extraction.

        Returns:
            Cleaned lines.
        """
        cleaned = []
        for line in lines:
            normalized = " ".join(line.split())
            if normalized:
                cleaned.append(normalized)
        return cleaned


def extract_text_from_pdf(
    pdf_path: Union[str, Path],
    password: Optional[str] = None,
) -> ExtractedDocument:
    """
    Convenience function to extract text from a PDF file.

    Args:
        pdf_path: Path to the PDF file.
        password: Optional password for encrypted PDFs.

    Returns:
        ExtractedDocument containing all extracted text.
    """
    return PDFExtractor(password=password).extract(pdf_path)


def document_to_text(data: bytes, password: Optional[str] = None) -> str:
    """
    Turn raw statement PDF bytes into pipeline input text.

    Args:
        data: Raw PDF bytes.
        password: Optional password for encrypted PDFs.

    Returns:
        Newline-delimited statement text.

    Raises:
        DocumentError: If the bytes cannot be read as a PDF with text.
    """
    return PDFExtractor(password=password).extract_bytes(data).get_all_text()
