"""Per-job output directories for the web app.

Each upload gets ``JOBS_ROOT/<uuid4>/`` holding the JSON result named after
the job kind and a ``metadata.json`` describing the run.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

JOBS_ROOT = Path("/tmp/bedreport/jobs")
METADATA_NAME = "metadata.json"
OUTPUT_NAMES = {
    "records": "records.json",
    "editions": "editions.json",
}


@dataclass(frozen=True)
class JobContext:
    job_id: str
    job_dir: Path
    kind: str
    source_filename: str
    created_at: str


def output_name(kind: str) -> str:
    try:
        return OUTPUT_NAMES[kind]
    except KeyError:
        raise ValueError(f"Unsupported job kind: {kind}") from None


def create_job(kind: str, source_filename: str) -> JobContext:
    # No directory is created for a kind that could never hold an output.
    output_name(kind)
    job_id = str(uuid4())
    job_dir = JOBS_ROOT / job_id
    job_dir.mkdir(parents=True, exist_ok=False)
    return JobContext(
        job_id=job_id,
        job_dir=job_dir,
        kind=kind,
        source_filename=source_filename,
        created_at=datetime.now(timezone.utc).isoformat(),
    )


def save_output(job: JobContext, text: str) -> Path:
    out_path = job.job_dir / output_name(job.kind)
    out_path.write_text(text, encoding="utf-8")
    return out_path


def save_metadata(job: JobContext, metadata: dict[str, Any]) -> Path:
    payload = {
        "job_id": job.job_id,
        "kind": job.kind,
        "source_filename": job.source_filename,
        "created_at": job.created_at,
        **metadata,
    }
    path = job.job_dir / METADATA_NAME
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return path


def resolve_job_output_path(job_id: str, kind: str) -> Path:
    if UUID(job_id).version != 4:
        raise ValueError("job_id must be UUID v4")
    return JOBS_ROOT / job_id / output_name(kind)
