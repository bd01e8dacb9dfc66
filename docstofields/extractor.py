from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

import fitz  # PyMuPDF
import numpy as np
import pdfplumber

from .models import LayoutBlock

logger = logging.getLogger(__name__)

_EASY_OCR_READER = None

PDF_MIME = "application/pdf"
IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/tiff": "tiff",
}


class UnsupportedDocumentError(ValueError):
    pass


@dataclass
class ExtractedText:
    text: str
    pages: int
    blocks: List[LayoutBlock] = field(default_factory=list)


def _get_easyocr_reader():
    global _EASY_OCR_READER
    if _EASY_OCR_READER is None:
        import easyocr

        logger.info("Initializing EasyOCR reader (GPU disabled)")
        _EASY_OCR_READER = easyocr.Reader(["en"], gpu=False)
    return _EASY_OCR_READER


def extract_document(data: bytes, mime_type: str = "", enable_ocr: bool = False) -> ExtractedText:
    """Extract plain text and layout blocks from a document payload.

    PDFs go through pdfplumber; pages without a text layer are OCR'd only
    when ``enable_ocr`` is set. Images always need OCR. ``text/*`` payloads are
    decoded as UTF-8.
    """
    mime = (mime_type or "").lower()
    if mime.startswith("text/"):
        return ExtractedText(text=data.decode("utf-8", errors="replace"), pages=1)
    if mime in IMAGE_TYPES:
        if not enable_ocr:
            raise UnsupportedDocumentError(f"{mime} requires OCR; enable the text-extraction enhancement")
        return _extract_image(data, IMAGE_TYPES[mime])
    if mime and mime not in {PDF_MIME, "application/octet-stream"}:
        raise UnsupportedDocumentError(f"Unsupported document type {mime}")
    return extract_pdf(data, enable_ocr=enable_ocr)


def extract_pdf(data: bytes, enable_ocr: bool = False) -> ExtractedText:
    text_parts: List[str] = []
    blocks: List[LayoutBlock] = []

    with pdfplumber.open(io.BytesIO(data)) as pdf:
        page_count = len(pdf.pages)
        doc = fitz.open(stream=data, filetype="pdf") if enable_ocr else None
        try:
            for page_index, page in enumerate(pdf.pages):
                width, height = float(page.width), float(page.height)
                words = page.extract_words() or []
                if words:
                    text_parts.append(page.extract_text() or "")
                    for word in words:
                        blocks.append(
                            LayoutBlock(
                                page=page_index,
                                text=word.get("text", ""),
                                x0=float(word.get("x0", 0.0)),
                                y0=float(word.get("top", 0.0)),
                                x1=float(word.get("x1", 0.0)),
                                y1=float(word.get("bottom", 0.0)),
                                page_width=width,
                                page_height=height,
                            )
                        )
                elif doc is not None:
                    page_text, page_blocks = _ocr_page(doc, page_index)
                    text_parts.append(page_text)
                    blocks.extend(page_blocks)
                else:
                    logger.info("Page %d has no text layer; OCR disabled", page_index + 1)
                    text_parts.append("")
        finally:
            if doc is not None:
                doc.close()

    return ExtractedText(text="\n".join(text_parts), pages=page_count, blocks=blocks)


def _extract_image(data: bytes, filetype: str) -> ExtractedText:
    doc = fitz.open(stream=data, filetype=filetype)
    try:
        text_parts: List[str] = []
        blocks: List[LayoutBlock] = []
        for page_index in range(doc.page_count):
            page_text, page_blocks = _ocr_page(doc, page_index)
            text_parts.append(page_text)
            blocks.extend(page_blocks)
        return ExtractedText(text="\n".join(text_parts), pages=doc.page_count, blocks=blocks)
    finally:
        doc.close()


def _ocr_page(doc: fitz.Document, page_index: int) -> tuple[str, List[LayoutBlock]]:
    """Run EasyOCR over one rendered page, one block per detected text run."""
    reader = _get_easyocr_reader()
    page = doc.load_page(page_index)
    pix = page.get_pixmap(matrix=fitz.Matrix(1, 1))
    array = np.frombuffer(pix.samples, dtype=np.uint8)
    array = array.reshape(pix.height, pix.width, pix.n)
    if pix.n == 4:
        array = array[:, :, :3]

    words: List[str] = []
    blocks: List[LayoutBlock] = []
    for bbox, text, _confidence in reader.readtext(array, detail=1):
        sanitized = text.strip()
        if not sanitized:
            continue
        x_coords = [point[0] for point in bbox]
        y_coords = [point[1] for point in bbox]
        blocks.append(
            LayoutBlock(
                page=page_index,
                text=sanitized,
                x0=float(min(x_coords)),
                y0=float(min(y_coords)),
                x1=float(max(x_coords)),
                y1=float(max(y_coords)),
                page_width=float(pix.width),
                page_height=float(pix.height),
            )
        )
        words.append(sanitized)
    return " ".join(words), blocks


def blocks_payload(blocks: List[LayoutBlock]) -> List[Dict[str, Any]]:
    return [block.model_dump() for block in blocks]
