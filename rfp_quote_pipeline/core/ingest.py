"""
Loading RFP text from plain-text files and text-layer PDFs.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

TEXT_EXTS = {".txt", ".md", ".text"}
PDF_EXTS = {".pdf"}


def pdf_to_text(pdf_path: Path) -> str:
    """Extract text from a searchable PDF using PyMuPDF."""
    import fitz  # pymupdf

    doc = fitz.open(pdf_path.as_posix())
    try:
        chunks = [page.get_text() for page in doc]
    finally:
        doc.close()
    return "\n".join(chunks)


def load_rfp_text(path: Path) -> str:
    """
    Read RFP text from a .txt/.md file or a PDF with a text layer.

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: for unsupported file types
    """
    if not path.exists():
        raise FileNotFoundError(path)

    ext = path.suffix.lower()
    if ext in TEXT_EXTS:
        text = path.read_text(encoding="utf-8", errors="replace")
    elif ext in PDF_EXTS:
        text = pdf_to_text(path)
        if not text.strip():
            logger.warning("%s has no text layer; run it through OCR first", path.name)
    else:
        raise ValueError(f"Unsupported file type: {path}")

    return text.strip()
