"""Program image loading tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from image import ImageError, load_image, parse_image


def test_parse_image() -> None:
    assert parse_image("1,9,10,3,2,3,11,0,99,30,40,50") == [1, 9, 10, 3, 2, 3, 11, 0, 99, 30, 40, 50]


def test_parse_trims_and_keeps_signs() -> None:
    assert parse_image("  1101,100,-1,4,+0 \n") == [1101, 100, -1, 4, 0]


@pytest.mark.parametrize(
    "text", ["", "   \n", "1,,2", "1,2,", "1;2", "3.5,1", "1, x", "1, 2", "1 ,2", "1_000,99", "\u0661,99"]
)
def test_parse_rejects_bad_tokens(text: str) -> None:
    with pytest.raises(ImageError):
        parse_image(text)


def test_parse_accepts_32_bit_limits() -> None:
    assert parse_image("-2147483648,2147483647") == [-2147483648, 2147483647]


@pytest.mark.parametrize("token", ["2147483648", "-2147483649", "4294967301"])
def test_parse_rejects_out_of_range(token: str) -> None:
    with pytest.raises(ImageError, match="32-bit"):
        parse_image(f"104,{token},99")


def test_load_image_reads_first_line(tmp_path: Path) -> None:
    p = tmp_path / "input.txt"
    p.write_text("3,0,4,0,99\nignored\n", encoding="utf-8")
    assert load_image(p) == [3, 0, 4, 0, 99]


def test_load_image_missing(tmp_path: Path) -> None:
    with pytest.raises(ImageError, match="not found"):
        load_image(tmp_path / "missing.txt")
