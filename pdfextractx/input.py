"""Input acquisition from a file path or standard input."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .backends.pymupdf_backend import sniff_filetype
from .exceptions import DocumentOpenError

LOGGER = logging.getLogger(__name__)

MAX_INMEM_BYTES = 64 * 1024 * 1024
CHUNK_SIZE = 64 * 1024


class InputSource:
    """
    A readable document source.

    Small standard-input payloads stay in memory; larger ones spill to a
    temporary file that is deleted by :meth:`close`.
    """

    def __init__(self, source: Union[Path, bytes], *, temp_path: Optional[Path] = None) -> None:
        self.source = source
        self._temp_path = temp_path

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "InputSource":
        resolved = Path(path).expanduser()
        if not resolved.is_file():
            raise DocumentOpenError(f"File not found: {path}")
        return cls(resolved)

    @classmethod
    def from_stream(cls, stream: BinaryIO, *, limit: int = MAX_INMEM_BYTES) -> "InputSource":
        buffer = bytearray()
        try:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                buffer.extend(chunk)
                if len(buffer) > limit:
                    return cls._spill(stream, bytes(buffer))
        except OSError as exc:
            raise DocumentOpenError(f"Unable to read standard input: {exc}") from exc

        if not buffer:
            raise DocumentOpenError("No input received on standard input.")
        LOGGER.info("Read %d bytes from standard input", len(buffer))
        return cls(bytes(buffer))

    @classmethod
    def _spill(cls, stream: BinaryIO, head: bytes) -> "InputSource":
        suffix = f".{sniff_filetype(head) or 'bin'}"
        with tempfile.NamedTemporaryFile(prefix="pdfextractx-", suffix=suffix, delete=False) as handle:
            temp_path = Path(handle.name)
            try:
                handle.write(head)
                shutil.copyfileobj(stream, handle, CHUNK_SIZE)
            except OSError:
                handle.close()
                temp_path.unlink(missing_ok=True)
                raise
        LOGGER.info("Standard input too large to buffer; spilled to %s", temp_path)
        return cls(temp_path, temp_path=temp_path)

    @property
    def is_temporary(self) -> bool:
        return self._temp_path is not None

    def describe(self) -> str:
        if isinstance(self.source, bytes):
            return f"stdin ({len(self.source)} bytes)"
        if self.is_temporary:
            return f"stdin (spilled to {self.source})"
        return str(self.source)

    def close(self) -> None:
        if self._temp_path is not None:
            self._temp_path.unlink(missing_ok=True)
            self._temp_path = None

    def __enter__(self) -> "InputSource":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["InputSource", "MAX_INMEM_BYTES"]
