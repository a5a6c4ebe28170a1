"""
Fixed-width file reader yielding bounded chunks of lines.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from src.observability.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Chunk:
    """
    A group of input lines committed as one atomic unit.

    Attributes:
        index: 0-based chunk number within the file
        lines: (line_number, text) pairs, newline stripped
    """

    index: int
    lines: list[tuple[int, str]] = field(default_factory=list)

    @property
    def first_line_number(self) -> int:
        return self.lines[0][0] if self.lines else 1

    def __len__(self) -> int:
        return len(self.lines)


class FixedWidthReader:
    """
    Streams a legacy fixed-width file without loading it into memory.

    Lines are read as ASCII; undecodable bytes become U+FFFD so that the
    line keeps its length and fails field validation instead of aborting
    the read. Empty lines (typically a trailing newline) are ignored.
    """

    def __init__(self, file_path: str | Path, encoding: str = "ascii"):
        """
        Initialize reader.

        Args:
            file_path: Path to the legacy file
            encoding: Source encoding

        Raises:
            FileNotFoundError: If the file does not exist
        """
        self.file_path = Path(file_path)
        self.encoding = encoding
        if not self.file_path.exists():
            raise FileNotFoundError(f"Input file not found: {file_path}")

    def read_lines(self) -> Iterator[tuple[int, str]]:
        """Yield (line_number, text) for every non-empty line, 1-based."""
        with open(self.file_path, encoding=self.encoding, errors="replace", newline="") as f:
            for line_number, line in enumerate(f, start=1):
                text = line.rstrip("\r\n")
                if not text:
                    logger.debug(f"Ignoring empty line {line_number}")
                    continue
                yield line_number, text

    def chunks(self, chunk_size: int) -> Iterator[Chunk]:
        """
        Group lines into chunks of at most ``chunk_size``.

        Raises:
            ValueError: If chunk_size is not positive
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")

        chunk = Chunk(index=0)
        for line_number, text in self.read_lines():
            chunk.lines.append((line_number, text))
            if len(chunk) >= chunk_size:
                yield chunk
                chunk = Chunk(index=chunk.index + 1)

        if chunk.lines:
            yield chunk
