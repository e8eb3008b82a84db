"""
Reading panel texts from disk and writing exports back.

Inputs may be plain text in any common encoding, PDF or Word documents;
all are reduced to '\\n'-separated text so line numbers match what the
panels display. Writes go through a temporary file and an atomic rename.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import chardet
import docx
import pypdf


# Leading bytes of formats that are never panel text
BINARY_MAGIC = (
    b'\x89PNG',
    b'\xff\xd8\xff',
    b'GIF8',
    b'PK\x03\x04',
    b'\x1f\x8b',
    b'\x7fELF',
    b'%PDF',
)

BOMS = (
    (b'\xef\xbb\xbf', 'utf-8-sig'),
    (b'\xff\xfe', 'utf-16'),
    (b'\xfe\xff', 'utf-16'),
)

DEFAULT_MAX_TEXT_SIZE = 10 * 1024 * 1024


@dataclass
class ReadResult:
    """Outcome of reading one input file."""
    success: bool
    text: str = ""
    encoding: str = ""
    error: Optional[str] = None
    is_binary: bool = False


@dataclass
class WriteResult:
    """Outcome of writing one output file."""
    success: bool
    bytes_written: int = 0
    error: Optional[str] = None


def normalize_line_endings(text: str) -> str:
    """Convert CRLF and CR line endings to LF."""
    return text.replace('\r\n', '\n').replace('\r', '\n')


def _pdf_text(path: Path) -> str:
    reader = pypdf.PdfReader(path)
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _docx_text(path: Path) -> str:
    return "\n".join(paragraph.text for paragraph in docx.Document(path).paragraphs)


class FileIOService:
    """
    Text input and export output for the CLI, the viewer and storage.

    Usage:
        result = FileIOService().read_text("answer_a.txt")
        if result.success:
            text = result.text
    """

    DOCUMENT_READERS: dict[str, tuple[str, Callable[[Path], str]]] = {
        '.pdf': ("PDF", _pdf_text),
        '.docx': ("DOCX", _docx_text),
    }

    def __init__(self, fallback_encoding: str = 'latin-1', sniff_size: int = 8192):
        self.fallback_encoding = fallback_encoding
        self.sniff_size = sniff_size

    def read_text(
        self,
        path: Path | str,
        encoding: Optional[str] = None,
        max_text_size: int = DEFAULT_MAX_TEXT_SIZE
    ) -> ReadResult:
        """
        Read a file as panel text.

        Plain files are decoded as UTF-8 when valid, otherwise with the
        encoding chardet reports, otherwise with the fallback encoding.
        A byte order mark always wins.

        Args:
            path: File to read
            encoding: Decode with this encoding instead of detecting one
            max_text_size: Largest accepted file, in bytes

        Returns:
            ReadResult holding the text or a user-facing error
        """
        path = Path(path)
        if not path.exists():
            return ReadResult(success=False, error=f"File not found: {path}")
        if not path.is_file():
            return ReadResult(success=False, error=f"Not a file: {path}")

        try:
            size = path.stat().st_size
        except OSError as e:
            return ReadResult(success=False, error=f"Could not check file size: {e}")
        if size > max_text_size:
            return ReadResult(
                success=False,
                error=f"File too large ({size / 1024 / 1024:.2f} MB, "
                      f"limit {max_text_size / 1024 / 1024:.2f} MB)",
            )

        document = self.DOCUMENT_READERS.get(path.suffix.lower())
        if document is not None:
            return self._read_document(path, *document)

        try:
            raw = path.read_bytes()
        except PermissionError:
            return ReadResult(success=False, error=f"Permission denied: {path}")
        except OSError as e:
            return ReadResult(success=False, error=f"Could not read {path}: {e}")

        if self._looks_binary(raw[:self.sniff_size]):
            return ReadResult(success=False, is_binary=True, error="File appears to be binary")

        text, used = self._decode(raw, encoding)
        return ReadResult(success=True, text=normalize_line_endings(text), encoding=used)

    def write_text(self, path: Path | str, content: str, encoding: str = 'utf-8') -> WriteResult:
        """
        Atomically replace a file with the given text.

        Missing parent directories are created. On failure the previous
        file, if any, is left untouched.
        """
        path = Path(path)
        encoded = content.encode(encoding)
        temp_name = None

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                'wb', dir=path.parent, prefix=f".{path.name}.", delete=False
            ) as handle:
                temp_name = handle.name
                handle.write(encoded)
            os.replace(temp_name, path)
        except PermissionError:
            self._discard(temp_name)
            return WriteResult(success=False, error=f"Permission denied: {path}")
        except OSError as e:
            self._discard(temp_name)
            return WriteResult(success=False, error=f"Could not write {path}: {e}")

        return WriteResult(success=True, bytes_written=len(encoded))

    # === Helpers ===

    def _read_document(self, path: Path, kind: str, reader: Callable[[Path], str]) -> ReadResult:
        try:
            text = reader(path)
        except Exception as e:
            logging.error(f"FileIOService - Could not extract {kind} text from {path}: {e}")
            return ReadResult(success=False, error=f"Failed to extract text from {kind}: {path}")
        return ReadResult(success=True, text=normalize_line_endings(text), encoding='utf-8')

    def _decode(self, raw: bytes, encoding: Optional[str]) -> tuple[str, str]:
        for bom, bom_encoding in BOMS:
            if raw.startswith(bom):
                encoding = bom_encoding
                break

        candidates = [encoding] if encoding else ['utf-8', self._detect_encoding(raw)]
        for candidate in candidates:
            if not candidate:
                continue
            try:
                return raw.decode(candidate), candidate
            except (UnicodeDecodeError, LookupError):
                continue

        logging.debug(f"FileIOService - Falling back to {self.fallback_encoding}")
        return raw.decode(self.fallback_encoding, errors='replace'), self.fallback_encoding

    @staticmethod
    def _detect_encoding(raw: bytes) -> Optional[str]:
        if not raw:
            return None
        guess = chardet.detect(raw)
        if guess['encoding'] and guess['confidence'] > 0.7:
            return guess['encoding'].lower()
        return None

    @staticmethod
    def _looks_binary(chunk: bytes) -> bool:
        if chunk.startswith((b'\xff\xfe', b'\xfe\xff')):
            return False
        if chunk.startswith(BINARY_MAGIC) or b'\x00' in chunk:
            return True
        control = sum(1 for b in chunk if b < 9 or 13 < b < 32)
        return bool(chunk) and control / len(chunk) > 0.3

    @staticmethod
    def _discard(temp_name: Optional[str]) -> None:
        if temp_name and os.path.exists(temp_name):
            os.unlink(temp_name)
