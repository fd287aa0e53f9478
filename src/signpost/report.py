from typing import List, Literal, Optional
from pathlib import Path

from pydantic import BaseModel, Field

SCAN_REPORT_SCHEMA_VERSION = "signpost-scan-v1"

# --- Scan Models ---

class ScanIssue(BaseModel):
    path: str
    op: str             # scandir, stat_entry, classify, task
    error: str          # e.g. "PermissionError: Permission denied"
    errno: Optional[int] = None

class ScanReport(BaseModel):
    schema_version: Literal["signpost-scan-v1"] = SCAN_REPORT_SCHEMA_VERSION
    root: str
    files_seen: int = 0
    binaries: List[str] = Field(default_factory=list)
    errors: List[ScanIssue] = Field(default_factory=list)
    duration_s: float = 0.0

# --- Signing Models ---

class SignReport(BaseModel):
    signed: List[str] = Field(default_factory=list)
    already_signed: List[str] = Field(default_factory=list)
    would_sign: List[str] = Field(default_factory=list) # dry runs only
    failed: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list) # the signing tool itself

class RunReport(BaseModel):
    scan: ScanReport
    sign: Optional[SignReport] = None # absent for plain scans


def write_report(path: Path, report: BaseModel) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_text(report.model_dump_json(indent=2) + "\n", encoding="utf-8")
