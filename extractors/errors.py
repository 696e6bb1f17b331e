from __future__ import annotations

from typing import List, Sequence

from openpyxl.utils import get_column_letter


class ReportFormatError(ValueError):
    """Base class for every parsing failure raised by the extractors."""


class NumeralFormatError(ReportFormatError):
    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"Non-digit character in numeral: {text!r}")


class RomanDecodeError(ReportFormatError):
    def __init__(self, character: str) -> None:
        self.character = character
        super().__init__(f"Invalid char {character!r} in Roman numeral")


class IntegerConversionError(ReportFormatError):
    def __init__(self, text: str, reason: str) -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"Cannot convert {text!r} to an integer: {reason}")


class PhaseFormatError(ReportFormatError):
    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"Phase must look like '<current>／<maximum>': {text!r}")


class DatePatternMismatchError(ReportFormatError):
    def __init__(self, title: str) -> None:
        self.title = title
        super().__init__(f"Title has no '（…時点）' date: {title!r}")


class IndexLayoutError(ReportFormatError):
    pass


class CellError(ReportFormatError):
    """A cell of the report grid could not be read.

    ``row`` and ``column`` are zero-based grid indices; the message shows the
    spreadsheet coordinates (1-based row, column letter) so the offending cell
    can be found in the source document.
    """

    def __init__(self, row: int, column: int, field: str, detail: str) -> None:
        self.row = row
        self.column = column
        self.field = field
        self.detail = detail
        super().__init__(f"{self.location}: {detail}")

    @property
    def location(self) -> str:
        return f"row {self.row + 1}, column {get_column_letter(self.column + 1)} ({self.field})"


class CellMissingError(CellError):
    def __init__(self, row: int, column: int, field: str) -> None:
        super().__init__(row, column, field, "cell is out of the sheet range")


class CellTypeError(CellError):
    def __init__(self, row: int, column: int, field: str, kind: str, expected: str) -> None:
        self.kind = kind
        super().__init__(row, column, field, f"expected {expected} cell, got {kind}")


class CellValueError(CellError):
    pass


class RecordExtractionError(ReportFormatError):
    def __init__(self, errors: Sequence[CellError]) -> None:
        self.errors: List[CellError] = list(errors)
        lines = [str(error) for error in self.errors]
        super().__init__(f"{len(lines)} cell(s) failed:\n" + "\n".join(lines))
