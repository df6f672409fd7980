"""File-based Memory implementation.

This adapter implements the Memory protocol on top of a single data file.

File Format:
    - Header page (file page 0): magic, version, page size, page count
    - Data pages (file page 1+): the usable memory, offset 0 is the first
      byte of file page 1

Growth appends zero-filled pages and rewrites the header, so a file that
was closed cleanly always reopens with the size it had.

Thread Safety:
    All operations are serialized by an internal lock.
"""

from __future__ import annotations

import os
import struct
import threading
from pathlib import Path
from typing import BinaryIO

from crm_store.infrastructure.logging import get_logger


# Header page format (file page 0)
# Magic (8 bytes) + Version (4 bytes) + Page Size (4 bytes) + Page Count (8 bytes)
HEADER_MAGIC = b"CRMSTORE"
HEADER_VERSION = 1
HEADER_FORMAT = ">8sIIQ"  # magic, version, page_size, page_count
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)

DEFAULT_PAGE_SIZE = 4096
DEFAULT_MAX_PAGES = 524288  # 2GB with 4KB pages

logger = get_logger(__name__)


class FileMemory:
    """File-backed implementation of the Memory protocol.

    Attributes:
        file_path: Path to the data file.
        page_size: Size of each page in bytes.
    """

    def __init__(
        self,
        file_path: str | Path,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        create: bool = True,
    ) -> None:
        """Open or create the data file.

        Args:
            file_path: Path to the data file.
            page_size: Size of each page.
            max_pages: Upper bound on usable pages; grow() fails beyond it.
            create: If True, create the file if it doesn't exist.

        Raises:
            FileNotFoundError: If file doesn't exist and create=False.
            ValueError: If the existing file is not a compatible data file.
        """
        self._file_path = Path(file_path)
        self._page_size = page_size
        self._max_pages = max_pages
        self._file: BinaryIO | None = None
        self._page_count = 0
        self._lock = threading.Lock()
        self._closed = False

        if self._file_path.exists():
            self._open_existing()
        elif create:
            self._create_new()
        else:
            self._closed = True
            raise FileNotFoundError(f"Data file not found: {self._file_path}")

    def _create_new(self) -> None:
        """Create a new data file containing only the header page."""
        self._file_path.parent.mkdir(parents=True, exist_ok=True)

        self._file = open(self._file_path, "w+b")

        header = struct.pack(HEADER_FORMAT, HEADER_MAGIC, HEADER_VERSION, self._page_size, 0)
        self._file.write(header + b"\x00" * (self._page_size - len(header)))
        self._file.flush()
        os.fsync(self._file.fileno())

        self._page_count = 0
        logger.info("data_file_created", path=str(self._file_path), page_size=self._page_size)

    def _open_existing(self) -> None:
        """Open an existing data file and validate its header."""
        self._file = open(self._file_path, "r+b")

        header_data = self._file.read(HEADER_SIZE)
        if len(header_data) < HEADER_SIZE:
            self._file.close()
            self._closed = True
            raise ValueError("Invalid data file: header too short")

        magic, version, page_size, page_count = struct.unpack(HEADER_FORMAT, header_data)

        problem = None
        if magic != HEADER_MAGIC:
            problem = f"Invalid data file: bad magic {magic!r}"
        elif version != HEADER_VERSION:
            problem = f"Unsupported data file version: {version}"
        elif page_size != self._page_size:
            problem = f"Page size mismatch: file has {page_size}, expected {self._page_size}"

        if problem is not None:
            self._file.close()
            self._closed = True
            raise ValueError(problem)

        self._page_count = page_count
        logger.info(
            "data_file_opened",
            path=str(self._file_path),
            page_size=page_size,
            pages=page_count,
        )

    def _update_header(self) -> None:
        """Rewrite the header page with the current page count."""
        assert self._file is not None
        header = struct.pack(
            HEADER_FORMAT, HEADER_MAGIC, HEADER_VERSION, self._page_size, self._page_count
        )
        self._file.seek(0)
        self._file.write(header)

    def _check_open(self) -> BinaryIO:
        if self._closed or self._file is None:
            raise IOError("Memory is closed")
        return self._file

    def _check_range(self, offset: int, length: int) -> None:
        limit = self._page_count * self._page_size
        if offset < 0 or length < 0 or offset + length > limit:
            raise ValueError(
                f"Access out of bounds: offset={offset} length={length} size={limit}"
            )

    @property
    def file_path(self) -> Path:
        """Return the data file path."""
        return self._file_path

    @property
    def page_size(self) -> int:
        """Return the fixed page size in bytes."""
        return self._page_size

    def size(self) -> int:
        """Return the number of usable pages (header page excluded)."""
        return self._page_count

    def grow(self, pages: int) -> int:
        """Append ``pages`` zero-filled pages.

        Returns:
            The previous size in pages, or -1 past max_pages.
        """
        file = self._check_open()
        if pages < 0:
            raise ValueError(f"Cannot grow by a negative page count: {pages}")

        with self._lock:
            previous = self._page_count
            if previous + pages > self._max_pages:
                return -1
            if pages == 0:
                return previous

            file.seek((previous + 1) * self._page_size)
            file.write(b"\x00" * (pages * self._page_size))
            self._page_count = previous + pages
            self._update_header()
            file.flush()
            return previous

    def read(self, offset: int, length: int) -> bytes:
        """Read bytes from the usable area."""
        file = self._check_open()
        with self._lock:
            self._check_range(offset, length)
            file.seek(self._page_size + offset)
            data = file.read(length)

        if len(data) != length:
            raise IOError(f"Short read: got {len(data)} bytes, expected {length}")
        return data

    def write(self, offset: int, data: bytes) -> None:
        """Write bytes into the usable area.

        The bytes reach the OS before this returns, so they survive the
        process exiting without close(). Only sync() makes them durable
        against power loss.
        """
        file = self._check_open()
        with self._lock:
            self._check_range(offset, len(data))
            file.seek(self._page_size + offset)
            file.write(data)
            file.flush()

    def sync(self) -> None:
        """Ensure all writes are persisted to stable storage."""
        if self._closed or self._file is None:
            return

        with self._lock:
            self._file.flush()
            os.fsync(self._file.fileno())

    def close(self) -> None:
        """Close the file and release resources."""
        if self._closed:
            return

        with self._lock:
            self._closed = True
            if self._file is not None:
                self._update_header()
                self._file.flush()
                os.fsync(self._file.fileno())
                self._file.close()
                self._file = None

    def __enter__(self) -> FileMemory:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    def __del__(self) -> None:
        """Destructor - ensure file is closed."""
        if hasattr(self, "_closed"):
            self.close()
