import html
import json
from pathlib import Path
from uuid import UUID

from fastapi import FastAPI, File, UploadFile, Request, HTTPException
from fastapi.templating import Jinja2Templates
from fastapi.responses import HTMLResponse, FileResponse
import uvicorn

from extractors.bed_report_extractor import collect_records, load_worksheet, records_to_json
from extractors.job_store import create_job, resolve_job_output_path, save_metadata, save_output
from extractors.phase import PhaseMode
from extractors.report_index import parse_report_index, report_to_dict
from extractors.errors import RecordExtractionError

app = FastAPI()
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

RECORD_TABLE_COLUMNS = [
    ("コード", lambda r: r.prefecture.code),
    ("都道府県", lambda r: r.prefecture.name),
    ("フェーズ", lambda r: f"{r.phase.current}/{r.phase.maximum}"),
    ("区分", lambda r: "緊急" if r.phase.mode is PhaseMode.EMERGENCY else "一般"),
    ("入院者数", lambda r: r.inpatient_count.total),
    ("確保病床使用者", lambda r: r.inpatient_count.dedicated),
    ("臨時施設使用者", lambda r: r.inpatient_count.extra),
    ("即応病床", lambda r: r.dedicated_bed_count.available_or_assigned),
    ("確保病床", lambda r: r.dedicated_bed_count.guaranteed),
    ("臨時施設確保病床", lambda r: r.dedicated_bed_count.extra_guaranteed),
]


def _single_line_message(message: object) -> str:
    return " ".join(str(message or "").split())


def _exception_message(exc: Exception) -> str:
    if isinstance(exc, HTTPException):
        return _single_line_message(exc.detail)
    if isinstance(exc, RecordExtractionError):
        return " / ".join(_single_line_message(e) for e in exc.errors)
    text = _single_line_message(str(exc))
    if text:
        return text
    return exc.__class__.__name__


def _build_table_html(headers, rows):
    th_class = "border border-stone-300 bg-stone-50 px-3 py-2 text-left text-sm font-semibold"
    td_class = "border border-stone-300 px-3 py-2 text-sm"
    header_cells = "".join(f"<th class=\"{th_class}\">{html.escape(h)}</th>" for h in headers)
    if not rows:
        return (
            "<table class=\"w-full border-collapse border border-stone-300 text-sm\">"
            f"<thead><tr>{header_cells}</tr></thead>"
            "<tbody><tr><td class=\"border border-stone-300 px-3 py-6 text-center text-stone-500\""
            f" colspan=\"{len(headers)}\">データがありません</td></tr></tbody></table>"
        )
    body_rows = []
    for row in rows:
        cells = "".join(f"<td class=\"{td_class}\">{html.escape(str(v))}</td>" for v in row)
        body_rows.append(f"<tr>{cells}</tr>")
    return (
        "<table class=\"w-full border-collapse border border-stone-300 text-sm\">"
        f"<thead><tr>{header_cells}</tr></thead>"
        f"<tbody>{''.join(body_rows)}</tbody></table>"
    )


def _render_success_html(kind: str, job_id: str, summary: str, table_html: str) -> str:
    safe_job_id = html.escape(job_id, quote=True)
    download_url = f"/jobs/{job_id}/{kind}.json"
    safe_download_url = html.escape(download_url, quote=True)
    return f"""
    <section class="rounded-lg border border-emerald-300 bg-emerald-50 p-4 shadow-sm"
      data-status="success"
      data-kind="{html.escape(kind, quote=True)}"
      data-job-id="{safe_job_id}"
      data-download-url="{safe_download_url}">
      <div class="text-sm font-semibold text-emerald-800">{html.escape(summary)}</div>
      <div class="mt-2 text-sm">Job ID: <code class="font-mono">{safe_job_id}</code></div>
      <a href="{safe_download_url}" class="mt-3 inline-block rounded border border-emerald-700 px-3 py-2 text-sm font-semibold text-emerald-700 hover:bg-emerald-100">
        JSONをダウンロード
      </a>
      <div class="mt-4 overflow-x-auto">{table_html}</div>
    </section>
    """


def _render_error_html(stage: str, message: str) -> str:
    safe_stage = html.escape(stage, quote=True)
    safe_message = html.escape(_single_line_message(message), quote=True)
    return f"""
    <section class="rounded-lg border border-red-300 bg-red-50 p-4 shadow-sm"
      data-status="error"
      data-stage="{safe_stage}">
      <div class="text-sm font-semibold text-red-800">処理に失敗しました</div>
      <div class="mt-1 text-sm">stage: <code class="font-mono">{safe_stage}</code></div>
      <div class="mt-1 text-sm">message: {safe_message}</div>
    </section>
    """


def _has_suffix(file: UploadFile, *suffixes: str) -> bool:
    name = (file.filename or "").lower()
    return name.endswith(suffixes)


def _save_failure(job, exc: Exception) -> None:
    save_metadata(job, {"status": "failed", "error": _exception_message(exc)})


def _run_records_job(file_bytes: bytes, source_filename: str):
    job = create_job(kind="records", source_filename=source_filename)
    input_path = job.job_dir / "input.xlsx"
    input_path.write_bytes(file_bytes)

    try:
        grid = load_worksheet(input_path)
        records = collect_records(grid, fail_fast=False)
    except Exception as exc:
        _save_failure(job, exc)
        raise
    save_output(job, records_to_json(records))
    save_metadata(
        job,
        {
            "status": "succeeded",
            "json_files": ["records.json"],
            "sheet_name": grid.title,
            "sheet_size": {"rows": grid.height, "columns": grid.width},
            "row_count": len(records),
            "emergency_count": sum(1 for r in records if r.phase.mode is PhaseMode.EMERGENCY),
            "extractor_version": "records-v1",
        },
    )
    return job, records


def _run_editions_job(page_bytes: bytes, source_filename: str):
    job = create_job(kind="editions", source_filename=source_filename)
    try:
        reports = parse_report_index(page_bytes)
    except Exception as exc:
        _save_failure(job, exc)
        raise
    payload = [report_to_dict(r) for r in reports]
    save_output(job, _dump_json(payload))
    save_metadata(
        job,
        {
            "status": "succeeded",
            "json_files": ["editions.json"],
            "edition_count": len(reports),
            "extractor_version": "editions-v1",
        },
    )
    return job, payload


def _dump_json(payload) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)


@app.get("/", response_class=HTMLResponse)
async def read_root(request: Request):
    return templates.TemplateResponse(request, "index.html")


@app.post("/records/upload", response_class=HTMLResponse)
async def handle_records_upload(file: UploadFile = File(...)):
    if not _has_suffix(file, ".xlsx"):
        return _render_error_html(stage="upload", message="Please upload a valid .xlsx file.")

    try:
        file_bytes = await file.read()
        job, records = _run_records_job(
            file_bytes=file_bytes,
            source_filename=file.filename or "report.xlsx",
        )
    except Exception as exc:
        print(f"Record extraction failed: {exc}")
        return _render_error_html(stage="records", message=_exception_message(exc))

    headers = [label for label, _ in RECORD_TABLE_COLUMNS]
    rows = [[getter(r) for _, getter in RECORD_TABLE_COLUMNS] for r in records]
    return _render_success_html(
        kind="records",
        job_id=job.job_id,
        summary=f"{len(records)}件のレコードを抽出しました",
        table_html=_build_table_html(headers, rows),
    )


@app.post("/editions/upload", response_class=HTMLResponse)
async def handle_editions_upload(file: UploadFile = File(...)):
    if not _has_suffix(file, ".html", ".htm"):
        return _render_error_html(stage="upload", message="Please upload a saved index page (.html).")

    try:
        page_bytes = await file.read()
        job, payload = _run_editions_job(
            page_bytes=page_bytes,
            source_filename=file.filename or "index.html",
        )
    except Exception as exc:
        print(f"Index parsing failed: {exc}")
        return _render_error_html(stage="editions", message=_exception_message(exc))

    rows = [[item["timestamp"], item["path"], item["filename"]] for item in payload]
    return _render_success_html(
        kind="editions",
        job_id=job.job_id,
        summary=f"{len(payload)}件の公表回を検出しました",
        table_html=_build_table_html(["時点", "リンク", "保存名"], rows),
    )


def _download_job_json(job_id: UUID, kind: str):
    job_id_str = str(job_id)
    try:
        out_path = resolve_job_output_path(job_id=job_id_str, kind=kind)
    except ValueError:
        raise HTTPException(status_code=404, detail="Job not found")
    if not out_path.parent.exists():
        raise HTTPException(status_code=404, detail="Job not found")
    if not out_path.exists():
        raise HTTPException(status_code=404, detail="JSON not found")
    return FileResponse(
        path=out_path,
        media_type="application/json; charset=utf-8",
        filename=f"{kind}.json",
    )


@app.get("/jobs/{job_id}/records.json")
async def download_records_json(job_id: UUID):
    return _download_job_json(job_id=job_id, kind="records")


@app.get("/jobs/{job_id}/editions.json")
async def download_editions_json(job_id: UUID):
    return _download_job_json(job_id=job_id, kind="editions")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
