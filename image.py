"""Program image loading.

An image is a single line of comma-separated signed decimal integers.
"""

from __future__ import annotations

import logging
from pathlib import Path

from isa import parse_word


class ImageError(ValueError):
    """Raised when a program image can't be read or parsed."""


def parse_image(text: str) -> list[int]:
    """Parse image text into a list of 32-bit words.

    Only the line as a whole is trimmed; tokens must not carry whitespace.
    """
    line = text.strip()
    if not line:
        err = "empty program image"
        raise ImageError(err)
    cells: list[int] = []
    for pos, tok in enumerate(line.split(",")):
        try:
            cells.append(parse_word(tok))
        except ValueError as e:
            err = f"bad integer at position {pos}: {e}"
            raise ImageError(err) from e
    return cells


def load_image(path: str | Path) -> list[int]:
    """Read and parse the program image stored at `path`."""
    p = Path(path)
    if not p.exists():
        err = f"Program file not found: {path}"
        raise ImageError(err)
    try:
        with p.open("r", encoding="utf-8") as f:
            text = f.readline()
    except OSError as e:
        err = f"Failed to read program file {path}: {e}"
        raise ImageError(err) from e
    cells = parse_image(text)
    logging.debug("load_image: %d cells from %s", len(cells), p)
    return cells
