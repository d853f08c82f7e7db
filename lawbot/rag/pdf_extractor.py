from typing import BinaryIO, List
import io
import logging

from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)


def extract_text_per_page(fileobj: BinaryIO) -> List[str]:
    reader = PdfReader(fileobj)
    pages: List[str] = []
    for page in reader.pages:
        text = page.extract_text() or ""
        normalized = " ".join(text.split())
        pages.append(normalized)
    return pages


def is_pdf(file_name: str, data: bytes) -> bool:
    return file_name.lower().endswith(".pdf") or data[:5] == b"%PDF-"


def extract_upload_text(file_name: str, data: bytes) -> str:
    """Extract plain text from an uploaded file.

    PDFs are read page by page with pypdf; anything else is decoded as UTF-8
    with undecodable bytes replaced.

    Args:
        file_name: Original file name, used to detect PDFs.
        data: Raw file content.

    Returns:
        Extracted text, possibly empty.

    Raises:
        ValueError: The file looks like a PDF but cannot be parsed.
    """
    if not is_pdf(file_name, data):
        return data.decode("utf-8", errors="replace")

    try:
        pages = extract_text_per_page(io.BytesIO(data))
    except PdfReadError as e:
        raise ValueError(f"Could not read PDF {file_name}: {e}") from e
    non_empty_pages = [p for p in pages if p.strip()]
    logger.info(f"Extracted {len(non_empty_pages)}/{len(pages)} non-empty pages from {file_name}")
    return "\n\n".join(non_empty_pages)
