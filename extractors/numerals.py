from __future__ import annotations

from enum import Enum
from typing import Optional

from extractors.errors import IntegerConversionError, NumeralFormatError, RomanDecodeError


class NumeralSystem(Enum):
    ASCII_DIGIT = "ascii_digit"
    FULLWIDTH_DIGIT = "fullwidth_digit"
    ROMAN_LETTER = "roman_letter"
    ROMAN_GLYPH = "roman_glyph"


ASCII_ZERO = 0x0030
FULLWIDTH_ZERO = 0xFF10
# Ⅰ (U+2160) .. Ⅸ (U+2168) plus Ⅹ (U+2169) for the IX pair.
ROMAN_GLYPH_ONE = 0x2160

U8_MAX = 0xFF
U32_MAX = 0xFFFFFFFF

_SYSTEM_RANGES = (
    (NumeralSystem.ASCII_DIGIT, ASCII_ZERO, ASCII_ZERO + 9),
    (NumeralSystem.FULLWIDTH_DIGIT, FULLWIDTH_ZERO, FULLWIDTH_ZERO + 9),
    (NumeralSystem.ROMAN_GLYPH, ROMAN_GLYPH_ONE, ROMAN_GLYPH_ONE + 9),
)
_ROMAN_LETTERS = frozenset("IVX")


def numeral_system(char: str) -> Optional[NumeralSystem]:
    if char in _ROMAN_LETTERS:
        return NumeralSystem.ROMAN_LETTER
    code = ord(char)
    for system, first, last in _SYSTEM_RANGES:
        if first <= code <= last:
            return system
    return None


def to_half_digits(text: str) -> Optional[str]:
    """Map ASCII/full-width digits to ASCII digits, or ``None`` on any other char."""
    out = []
    for char in text:
        system = numeral_system(char)
        if system is NumeralSystem.ASCII_DIGIT:
            out.append(char)
        elif system is NumeralSystem.FULLWIDTH_DIGIT:
            out.append(chr(ord(char) - FULLWIDTH_ZERO + ASCII_ZERO))
        else:
            return None
    return "".join(out)


def parse_digits(text: str, max_value: int = U32_MAX) -> int:
    digits = to_half_digits(text)
    if digits is None:
        raise NumeralFormatError(text)
    if not digits:
        raise IntegerConversionError(text, "empty string")
    if len(digits.lstrip("0")) > len(str(max_value)):
        raise IntegerConversionError(text, f"exceeds {max_value}")
    value = int(digits)
    if value > max_value:
        raise IntegerConversionError(text, f"exceeds {max_value}")
    return value


_ROMAN_LETTER_VALUES = {"I": 1, "V": 5, "X": 10}


def _roman_value(char: str) -> Optional[int]:
    system = numeral_system(char)
    if system is NumeralSystem.ROMAN_LETTER:
        return _ROMAN_LETTER_VALUES[char]
    if system is NumeralSystem.ROMAN_GLYPH:
        return ord(char) - ROMAN_GLYPH_ONE + 1
    return None


def parse_roman_numerals(text: str) -> int:
    """Decode a Roman numeral in the 1-9 range.

    Subtractive pairs (IV, IX) are detected by one-character lookahead only;
    the input is not checked for canonical form. Ten on its own is rejected.
    """
    if not text:
        raise IntegerConversionError(text, "empty Roman numeral")
    total = 0
    index = 0
    while index < len(text):
        char = text[index]
        value = _roman_value(char)
        if value is None or value == 10:
            raise RomanDecodeError(char)
        index += 1
        if value == 1 and index < len(text):
            following = _roman_value(text[index])
            if following in (5, 10):
                value = following - 1
                index += 1
        total += value
    return total
