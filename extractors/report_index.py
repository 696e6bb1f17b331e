#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup, NavigableString, Tag

from extractors.errors import DatePatternMismatchError, IndexLayoutError
from extractors.report_datetime import JST, format_timestamp, parse_report_datetime

logger = logging.getLogger(__name__)

REPORT_INDEX_URL = os.getenv(
    "REPORT_INDEX_URL", "https://www.mhlw.go.jp/stf/seisakunitsuite/newpage_00023.html"
)
REPORT_BASE_URL = os.getenv("REPORT_BASE_URL", "https://www.mhlw.go.jp/")
REQUEST_TIMEOUT = 60
LIST_CONTAINER_SELECTOR = ".m-grid__col1"
# Editions older than this use a different sheet layout.
OLDEST_EDITION = datetime(2022, 12, 23, 0, 0, tzinfo=JST)


@dataclass(frozen=True)
class Report:
    timestamp: datetime
    path: str


def _element_children(tag: Tag) -> Iterator[Tag]:
    return (child for child in tag.children if isinstance(child, Tag))


def _title_text(item: Tag) -> str:
    first = next(iter(item.children), None)
    if not isinstance(first, NavigableString):
        raise IndexLayoutError(f"List item has no leading title text: {item!r}")
    return str(first).strip()


def _link_path(item: Tag) -> str:
    anchor = next(_element_children(item), None)
    href = anchor.get("href") if anchor is not None else None
    if not href:
        raise IndexLayoutError(f"List item has no linked file: {item!r}")
    return str(href).strip()


def parse_report_index(html: Union[str, bytes], limit: Optional[int] = None) -> List[Report]:
    """List report editions on the index page, newest first.

    The list is a run of three sibling items per edition: the dated title, a
    spacer and the item holding the file link. Scanning stops at ``limit``,
    at the first title without a date or after ``OLDEST_EDITION``.
    Raw bytes are decoded by BeautifulSoup from the page's declared charset.
    """
    soup = BeautifulSoup(html, "html.parser")
    column = soup.select_one(LIST_CONTAINER_SELECTOR)
    if column is None:
        raise IndexLayoutError(f"{LIST_CONTAINER_SELECTOR} was not found in the index page.")
    container = next(_element_children(column), None)
    if container is None:
        raise IndexLayoutError(f"{LIST_CONTAINER_SELECTOR} has no list element.")

    items = _element_children(container)
    reports: List[Report] = []
    while limit is None or len(reports) < limit:
        title_item = next(items, None)
        if title_item is None:
            break
        try:
            timestamp = parse_report_datetime(_title_text(title_item))
        except DatePatternMismatchError as exc:
            logger.debug("stop scanning: %s", exc)
            break
        next(items, None)
        link_item = next(items, None)
        if link_item is None:
            raise IndexLayoutError(f"No link item for the edition at {timestamp.isoformat()}.")
        reports.append(Report(timestamp=timestamp, path=_link_path(link_item)))
        if timestamp <= OLDEST_EDITION:
            break
    return reports


def report_filename(report: Report) -> str:
    name = format_timestamp(report.timestamp)
    suffix = PurePosixPath(urlparse(report.path).path).suffix
    return f"{name}{suffix}" if suffix else name


def report_to_dict(report: Report) -> Dict[str, Any]:
    return {
        "timestamp": report.timestamp.isoformat(),
        "path": report.path,
        "filename": report_filename(report),
    }


def fetch_index(url: str = REPORT_INDEX_URL) -> str:
    response = requests.get(url, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    response.encoding = response.apparent_encoding or response.encoding
    return response.text


def download_reports(reports: Sequence[Report], out_dir: Path, base_url: str = REPORT_BASE_URL) -> List[Path]:
    saved: List[Path] = []
    for report in reports:
        out_path = out_dir / report_filename(report)
        if out_path.exists():
            print(f"[warn] file {out_path} already exists.")
            continue
        response = requests.get(urljoin(base_url, report.path), timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        out_path.write_bytes(response.content)
        saved.append(out_path)
        print(f"[info] report on {report.timestamp.strftime('%Y-%m-%d %H:%M %Z')} are exported.")
    return saved


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="調査結果の一覧ページから各回のExcelをダウンロードする")
    parser.add_argument("save_to", type=Path, help="保存先ディレクトリ")
    parser.add_argument("-n", type=int, default=None, help="取得する件数（新しい順、省略時は全件）")
    parser.add_argument("--index-url", default=REPORT_INDEX_URL, help="一覧ページのURL")
    parser.add_argument("--verbose", action="store_true", help="デバッグログを出力する")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    save_dir: Path = args.save_to
    if not save_dir.is_dir():
        print(f"[error] {save_dir}: No such directory", file=sys.stderr)
        return 1
    reports = parse_report_index(fetch_index(args.index_url), limit=args.n)
    download_reports(reports, save_dir)
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception as exc:  # noqa: BLE001
        print(f"ERROR: {exc}", file=sys.stderr)
        raise SystemExit(1)
