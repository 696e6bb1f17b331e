from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from extractors.errors import PhaseFormatError
from extractors.numerals import U8_MAX, parse_digits, parse_roman_numerals, to_half_digits

PHASE_SEPARATOR = "／"


class PhaseMode(str, Enum):
    # 一般フェーズ
    NORMAL = "Normal"
    # 緊急フェーズ
    EMERGENCY = "Emergency"


@dataclass(frozen=True)
class PhaseCapture:
    current: str
    maximum: str


@dataclass(frozen=True)
class Phase:
    current: int
    maximum: int
    mode: PhaseMode


def split_phase(text: str) -> PhaseCapture:
    parts = text.split(PHASE_SEPARATOR)
    if len(parts) != 2:
        raise PhaseFormatError(text)
    return PhaseCapture(current=parts[0].strip(), maximum=parts[1].strip())


def parse_phase(text: str) -> Phase:
    """Parse a ``"<current>／<maximum>"`` phase cell.

    The numeral system is decided from the current part alone: digits mean
    the normal phase, anything else is decoded as Roman numerals and marks the
    emergency phase. Both parts are assumed to share one system.
    """
    capture = split_phase(text)
    if to_half_digits(capture.current) is not None:
        return Phase(
            current=parse_digits(capture.current, max_value=U8_MAX),
            maximum=parse_digits(capture.maximum, max_value=U8_MAX),
            mode=PhaseMode.NORMAL,
        )
    return Phase(
        current=parse_roman_numerals(capture.current),
        maximum=parse_roman_numerals(capture.maximum),
        mode=PhaseMode.EMERGENCY,
    )
