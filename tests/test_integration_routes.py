import json
import re
from uuid import uuid4

import openpyxl
from fastapi.testclient import TestClient

import main as app_main
from extractors import job_store

INDEX_HTML = (
    "<html><body><div class=\"m-grid__col1\"><ul>"
    "<li>調査結果（２０２３年１月１１日０時時点）</li><li></li>"
    "<li><a href=\"/content/001036151.xlsx\">Excel</a></li>"
    "<li>調査結果（2023年1月4日0時30分時点）</li><li></li>"
    "<li><a href=\"/content/001034410.xlsx\">Excel</a></li>"
    "<li>調査結果（2022年12月23日0時時点）</li><li></li>"
    "<li><a href=\"/content/001029412.xlsx\">Excel</a></li>"
    "</ul></div></body></html>"
)


client = TestClient(app_main.app)


def _extract_download_path(html: str, kind: str) -> str:
    pattern = rf"/jobs/[0-9a-f\-]+/{kind}\.json"
    m = re.search(pattern, html)
    assert m, f"download path for {kind} was not found"
    return m.group(0)


def test_index_page_renders():
    resp = client.get("/")
    assert resp.status_code == 200
    assert "/records/upload" in resp.text


def test_records_upload_and_download_fixed_path(tmp_path, monkeypatch, report_xlsx):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path / "jobs")

    resp = client.post(
        "/records/upload",
        files={"file": ("001019538.xlsx", report_xlsx.read_bytes(), "application/octet-stream")},
    )
    assert resp.status_code == 200
    assert 'data-status="success"' in resp.text
    assert "東京都" in resp.text
    path = _extract_download_path(resp.text, "records")

    dl = client.get(path)
    assert dl.status_code == 200
    records = json.loads(dl.text)
    assert len(records) == 47
    assert records[12]["prefecture"] == {"code": "13", "name": "東京都"}

    job_id = path.split("/")[2]
    metadata = json.loads((tmp_path / "jobs" / job_id / "metadata.json").read_text(encoding="utf-8"))
    assert metadata["row_count"] == 47
    assert metadata["emergency_count"] == 1
    assert metadata["sheet_name"] == "病床使用率"


def test_records_upload_reports_every_bad_cell(tmp_path, monkeypatch, report_rows):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path / "jobs")
    rows = report_rows
    rows[8][2] = "-"
    rows[20][5] = "不明"
    workbook = openpyxl.Workbook()
    for row in rows:
        workbook.active.append(row)
    broken = tmp_path / "broken.xlsx"
    workbook.save(broken)

    resp = client.post(
        "/records/upload",
        files={"file": ("broken.xlsx", broken.read_bytes(), "application/octet-stream")},
    )
    assert resp.status_code == 200
    assert 'data-status="error"' in resp.text
    assert 'data-stage="records"' in resp.text
    assert "row 9, column C" in resp.text
    assert "row 21, column F" in resp.text


def test_records_upload_rejects_non_xlsx():
    resp = client.post(
        "/records/upload",
        files={"file": ("report.pdf", b"%PDF-1.4\n", "application/pdf")},
    )
    assert resp.status_code == 200
    assert 'data-stage="upload"' in resp.text


def test_editions_upload_and_download(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)

    resp = client.post(
        "/editions/upload",
        files={"file": ("newpage_00023.html", INDEX_HTML.encode("utf-8"), "text/html")},
    )
    assert resp.status_code == 200
    path = _extract_download_path(resp.text, "editions")

    dl = client.get(path)
    assert dl.status_code == 200
    editions = json.loads(dl.text)
    assert [e["filename"] for e in editions] == [
        "20230111T0000JST.xlsx",
        "20230104T0030JST.xlsx",
        "20221223T0000JST.xlsx",
    ]

    job_id = path.split("/")[2]
    metadata = json.loads((tmp_path / job_id / "metadata.json").read_text(encoding="utf-8"))
    assert metadata["status"] == "succeeded"
    assert metadata["edition_count"] == 3


def test_records_upload_failure_leaves_failed_metadata(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)

    resp = client.post(
        "/records/upload",
        files={"file": ("broken.xlsx", b"not a workbook", "application/octet-stream")},
    )
    assert 'data-status="error"' in resp.text

    (job_dir,) = list(tmp_path.iterdir())
    metadata = json.loads((job_dir / "metadata.json").read_text(encoding="utf-8"))
    assert metadata["status"] == "failed"
    assert metadata["kind"] == "records"
    assert metadata["error"]
    assert not (job_dir / "records.json").exists()


def test_editions_upload_accepts_shift_jis_page(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    page = INDEX_HTML.replace("<html>", "<html><head><meta charset=\"shift_jis\"></head>")

    resp = client.post(
        "/editions/upload",
        files={"file": ("newpage_00023.html", page.encode("shift_jis"), "text/html")},
    )
    assert 'data-status="success"' in resp.text
    editions = json.loads(client.get(_extract_download_path(resp.text, "editions")).text)
    assert editions[0]["filename"] == "20230111T0000JST.xlsx"


def test_fixed_download_returns_404_when_missing():
    missing_job = str(uuid4())
    assert client.get(f"/jobs/{missing_job}/records.json").status_code == 404
    assert client.get(f"/jobs/{missing_job}/editions.json").status_code == 404


def test_fixed_download_returns_404_when_json_missing(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    job = job_store.create_job(kind="records", source_filename="report.xlsx")
    assert client.get(f"/jobs/{job.job_id}/records.json").status_code == 404


def test_fixed_download_rejects_invalid_job_id_format():
    assert client.get("/jobs/not-a-uuid/records.json").status_code == 422
