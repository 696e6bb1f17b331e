#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import openpyxl

from extractors.errors import (
    CellError,
    CellMissingError,
    CellTypeError,
    CellValueError,
    RecordExtractionError,
    ReportFormatError,
)
from extractors.numerals import U32_MAX
from extractors.phase import Phase, parse_phase

logger = logging.getLogger(__name__)


class CellKind(Enum):
    EMPTY = "empty"
    TEXT = "text"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    ERROR = "error"


@dataclass(frozen=True)
class Cell:
    kind: CellKind
    value: Any = None

    def to_text(self) -> str:
        if self.kind is CellKind.EMPTY:
            return ""
        return str(self.value)


EMPTY_CELL = Cell(CellKind.EMPTY)


def to_cell(value: Any) -> Cell:
    if value is None:
        return EMPTY_CELL
    # bool is a subclass of int
    if isinstance(value, bool):
        return Cell(CellKind.BOOL, value)
    if isinstance(value, int):
        return Cell(CellKind.INT, value)
    if isinstance(value, float):
        return Cell(CellKind.FLOAT, value)
    return Cell(CellKind.TEXT, str(value))


class SheetGrid:
    """Zero-based ``(row, column) -> Cell`` lookup over a worksheet.

    ``get_value`` returns ``None`` outside the populated range, which is
    distinct from an in-range blank cell (``CellKind.EMPTY``).
    """

    def __init__(self, rows: Sequence[Sequence[Cell]], title: str = "") -> None:
        self.rows: List[List[Cell]] = [list(row) for row in rows]
        self.title = title

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[Any]], title: str = "") -> "SheetGrid":
        return cls([[to_cell(value) for value in row] for row in rows], title=title)

    @property
    def height(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    def get_value(self, position: Tuple[int, int]) -> Optional[Cell]:
        row, column = position
        if row < 0 or column < 0 or row >= len(self.rows):
            return None
        cells = self.rows[row]
        if column >= len(cells):
            return None
        return cells[column]


def _openpyxl_cell(cell: Any) -> Cell:
    if getattr(cell, "data_type", None) == "e":
        return Cell(CellKind.ERROR, cell.value)
    return to_cell(cell.value)


def load_worksheet(path: Path) -> SheetGrid:
    """Read the first worksheet of an .xlsx workbook with cached values."""
    workbook = openpyxl.load_workbook(path, data_only=True, read_only=True)
    try:
        worksheet = workbook.worksheets[0]
        rows = [[_openpyxl_cell(cell) for cell in row] for row in worksheet.iter_rows()]
        return SheetGrid(rows, title=worksheet.title)
    finally:
        workbook.close()


@dataclass(frozen=True)
class ReportLayout:
    # 0-based; rows 9..55 of the sheet
    start_row: int = 8
    end_row: int = 54
    prefecture: int = 0
    inpatient_total: int = 2
    inpatient_dedicated: int = 3
    inpatient_extra: int = 4
    phase: int = 5
    available_or_assigned: int = 6
    guaranteed: int = 7
    extra_guaranteed: int = 8

    def rows(self) -> range:
        return range(self.start_row, self.end_row + 1)


DEFAULT_LAYOUT = ReportLayout()


@dataclass(frozen=True)
class Prefecture:
    code: str
    name: str


@dataclass(frozen=True)
class PatientCount:
    # 患者総数（入院者数）
    total: int
    # 確保病床使用者
    dedicated: int
    # 臨時の医療施設・入院待機施設の使用者
    extra: int


@dataclass(frozen=True)
class ResourceCount:
    # 即応病床
    available_or_assigned: int
    # 確保病床
    guaranteed: int
    # 臨時の医療施設と入院待機施設の確保病床
    extra_guaranteed: int


@dataclass(frozen=True)
class Record:
    prefecture: Prefecture
    phase: Phase
    inpatient_count: PatientCount
    dedicated_bed_count: ResourceCount


def _require_cell(grid: SheetGrid, row: int, column: int, field: str) -> Cell:
    cell = grid.get_value((row, column))
    if cell is None:
        raise CellMissingError(row, column, field)
    return cell


def _read_text(grid: SheetGrid, row: int, column: int, field: str) -> str:
    cell = _require_cell(grid, row, column, field)
    if cell.kind is not CellKind.TEXT:
        raise CellTypeError(row, column, field, cell.kind.value, "text")
    return cell.to_text()


def get_number(grid: SheetGrid, row: int, column: int, field: str) -> int:
    cell = _require_cell(grid, row, column, field)
    if cell.kind is CellKind.INT:
        value = cell.value
    elif cell.kind is CellKind.FLOAT:
        if not math.isfinite(cell.value):
            raise CellValueError(row, column, field, f"non-finite value {cell.value!r}")
        value = math.trunc(cell.value)
    else:
        raise CellTypeError(row, column, field, cell.kind.value, "numeric")
    if value < 0 or value > U32_MAX:
        raise CellValueError(row, column, field, f"{cell.value!r} is not an unsigned 32-bit count")
    return value


def read_prefecture(grid: SheetGrid, row: int, layout: ReportLayout = DEFAULT_LAYOUT) -> Prefecture:
    column = layout.prefecture
    text = _read_text(grid, row, column, "prefecture")
    parts = text.strip().split(None, 1)
    if len(parts) != 2:
        raise CellValueError(row, column, "prefecture", f"expected '<code> <name>', got {text!r}")
    return Prefecture(code=parts[0].strip(), name=parts[1].strip())


def read_phase(grid: SheetGrid, row: int, layout: ReportLayout = DEFAULT_LAYOUT) -> Phase:
    column = layout.phase
    text = _read_text(grid, row, column, "phase")
    try:
        return parse_phase(text)
    except ReportFormatError as exc:
        raise CellValueError(row, column, "phase", str(exc)) from exc


def read_record(grid: SheetGrid, row: int, layout: ReportLayout = DEFAULT_LAYOUT) -> Record:
    prefecture = read_prefecture(grid, row, layout)
    phase = read_phase(grid, row, layout)
    record = Record(
        prefecture=prefecture,
        phase=phase,
        inpatient_count=PatientCount(
            total=get_number(grid, row, layout.inpatient_total, "inpatient_count.total"),
            dedicated=get_number(grid, row, layout.inpatient_dedicated, "inpatient_count.dedicated"),
            extra=get_number(grid, row, layout.inpatient_extra, "inpatient_count.extra"),
        ),
        dedicated_bed_count=ResourceCount(
            available_or_assigned=get_number(
                grid, row, layout.available_or_assigned, "dedicated_bed_count.available_or_assigned"
            ),
            guaranteed=get_number(grid, row, layout.guaranteed, "dedicated_bed_count.guaranteed"),
            extra_guaranteed=get_number(
                grid, row, layout.extra_guaranteed, "dedicated_bed_count.extra_guaranteed"
            ),
        ),
    )
    logger.debug("row %d: %s %s phase=%s", row + 1, prefecture.code, prefecture.name, phase)
    return record


def collect_records(
    grid: SheetGrid,
    layout: ReportLayout = DEFAULT_LAYOUT,
    fail_fast: bool = True,
) -> List[Record]:
    """Read one record per configured row, in row order.

    With ``fail_fast`` the first bad cell is raised as is; otherwise every row
    is attempted and all failures are raised together.
    """
    records: List[Record] = []
    errors: List[CellError] = []
    for row in layout.rows():
        try:
            records.append(read_record(grid, row, layout))
        except CellError as exc:
            if fail_fast:
                raise
            errors.append(exc)
    if errors:
        raise RecordExtractionError(errors)
    return records


def record_to_dict(record: Record) -> Dict[str, Any]:
    payload = asdict(record)
    payload["phase"]["mode"] = record.phase.mode.value
    return payload


def records_to_json(records: Iterable[Record]) -> str:
    return json.dumps([record_to_dict(r) for r in records], ensure_ascii=False, indent=2)


def output_path_for(report_file: Path, save_dir: Path) -> Path:
    return save_dir / report_file.with_suffix(".json").name


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="入院患者受入病床数等の調査結果ExcelをJSONに変換する"
    )
    parser.add_argument("report_file", type=Path, help="入力Excel(.xlsx)パス")
    parser.add_argument("save_to", type=Path, help="JSON保存先ディレクトリ")
    parser.add_argument(
        "--collect-errors",
        action="store_true",
        help="最初のエラーで止めず、全行のエラーをまとめて報告する",
    )
    parser.add_argument("--verbose", action="store_true", help="デバッグログを出力する")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    report_file: Path = args.report_file
    save_dir: Path = args.save_to
    if not report_file.exists():
        print(f"[error] {report_file}: File is not found.", file=sys.stderr)
        return 1
    if not save_dir.is_dir():
        print(f"[error] {save_dir}: Directory not found.", file=sys.stderr)
        return 1

    out_path = output_path_for(report_file, save_dir)
    if out_path.exists():
        print(f"[warn] Skipped {out_path}: File already exists.")
        return 0

    grid = load_worksheet(report_file)
    print(f"Extracting {grid.title} sheet in {report_file}...")
    records = collect_records(grid, fail_fast=not args.collect_errors)
    out_path.write_text(records_to_json(records), encoding="utf-8")
    print("Done.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception as exc:  # noqa: BLE001
        print(f"ERROR: {exc}", file=sys.stderr)
        raise SystemExit(1)
