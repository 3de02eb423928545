"""
Examination Result Analysis Engine
FastAPI Application Entry Point
"""

import logging
import uuid
from typing import Dict, List, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import ALLOWED_EXTENSIONS, LOG_LEVEL, MAX_FILES_PER_BATCH, MAX_FILE_SIZE
from models.student import SubjectCredit
from services.analysis_session import AnalysisSession, SessionBusyError
from services.credit_validator import CreditAssignmentError, CreditCapability
from services.file_parser import FileParserError
from services.grade_engine import GradeLookupError, PhaseOrderError
from utils.helpers import sanitize_filename

# ───── Logging ─────
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s  %(levelname)s  %(message)s")
logger = logging.getLogger(__name__)

# ───── App Setup ─────
app = FastAPI(
    title="Examination Result Analysis",
    description="Upload result spreadsheets, assign credits and compute SGPA / CGPA.",
    version="1.0.0",
)

# ───── In-Memory Session Store ─────
# Maps session_id → AnalysisSession
_sessions: Dict[str, AnalysisSession] = {}


# ───── Request bodies ─────

class CreditEntry(BaseModel):
    subject_code: str
    credit_value: float
    subject_name: str = ""
    faculty_name: str = ""
    is_current_semester: bool = True


class CreditAssignment(BaseModel):
    credits: List[CreditEntry]
    with_names: bool = True
    with_arrear_flag: bool = True
    current_semesters: Optional[List[int]] = None


class CurrentPhaseRequest(BaseModel):
    current_semesters: Optional[List[int]] = None


class CumulativePhaseRequest(BaseModel):
    credits: Optional[List[CreditEntry]] = Field(default=None, description="Defaults to the current-semester credits")


def _to_credits(entries: List[CreditEntry]) -> List[SubjectCredit]:
    return [SubjectCredit(**e.model_dump()) for e in entries]


def _capability(body: CreditAssignment) -> CreditCapability:
    capability = CreditCapability.BASIC
    if body.with_names:
        capability |= CreditCapability.WITH_NAMES
    if body.with_arrear_flag:
        capability |= CreditCapability.WITH_ARREAR_FLAG
    return capability


def _get_session(session_id: str) -> AnalysisSession:
    session = _sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found.")
    return session


def _departments(session: AnalysisSession) -> list:
    return [
        {"department_code": d.department_code, "distinct_student_count": d.distinct_student_count}
        for d in session.departments()
    ]


# ───── Routes ─────

@app.post("/api/sessions")
async def create_session():
    """Start a new analysis session."""
    session_id = str(uuid.uuid4())
    _sessions[session_id] = AnalysisSession()
    logger.info(f"Session {session_id}: created")
    return {"session_id": session_id}


@app.post("/api/sessions/{session_id}/files")
async def upload_files(session_id: str, files: List[UploadFile] = File(..., description="Result workbooks (XLS/XLSX)")):
    """Parse a batch of result files into the session's record set."""
    session = _get_session(session_id)

    if len(files) > MAX_FILES_PER_BATCH:
        raise HTTPException(status_code=400, detail=f"Too many files. Maximum {MAX_FILES_PER_BATCH} per batch.")

    uploads = []
    for f in files:
        data = await f.read()
        if len(data) > MAX_FILE_SIZE:
            raise HTTPException(status_code=413, detail=f"{f.filename} is too large. Maximum 50 MB.")
        uploads.append((sanitize_filename(f.filename or "upload"), data))

    try:
        records = await session.ingest(uploads)
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except FileParserError as e:
        logger.warning(f"Session {session_id}: batch rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Session {session_id}: {len(records)} records from {len(uploads)} file(s)")
    return {
        "session_id": session_id,
        "record_count": len(records),
        "files": session.files,
        "semesters": session.semesters,
        "subject_codes": session.subject_codes,
        "departments": _departments(session),
        "allowed_extensions": sorted(ALLOWED_EXTENSIONS),
    }


@app.get("/api/sessions/{session_id}/departments")
async def list_departments(session_id: str):
    session = _get_session(session_id)
    return {"departments": _departments(session)}


@app.put("/api/sessions/{session_id}/credits")
async def assign_credits(session_id: str, body: CreditAssignment):
    """Store the credit set; 422 with every issue when it does not pass validation."""
    session = _get_session(session_id)
    try:
        issues = session.assign_credits(_to_credits(body.credits), _capability(body), body.current_semesters)
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    payload = {"issues": [i.to_dict() for i in issues]}
    if issues:
        return JSONResponse(status_code=422, content=payload)
    return payload


@app.post("/api/sessions/{session_id}/compute/current")
async def compute_current(session_id: str, body: Optional[CurrentPhaseRequest] = None):
    session = _get_session(session_id)
    semesters = body.current_semesters if body else None
    try:
        sgpa = session.compute_current(semesters)
    except CreditAssignmentError as e:
        return JSONResponse(status_code=422, content={"issues": [i.to_dict() for i in e.issues]})
    except (GradeLookupError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {
        "current_semesters": list(session.engine.current_semesters),
        "students": [
            {"registration_number": regno, "sgpa_by_semester": {str(k): v for k, v in by_sem.items()}}
            for regno, by_sem in sorted(sgpa.items())
        ],
    }


@app.post("/api/sessions/{session_id}/compute/cumulative")
async def compute_cumulative(session_id: str, body: Optional[CumulativePhaseRequest] = None):
    session = _get_session(session_id)
    credits = _to_credits(body.credits) if body and body.credits is not None else None
    try:
        performances = session.compute_cumulative(credits)
    except CreditAssignmentError as e:
        return JSONResponse(status_code=422, content={"issues": [i.to_dict() for i in e.issues]})
    except GradeLookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (PhaseOrderError, SessionBusyError) as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {"students": [p.to_dict() for p in performances]}


@app.get("/api/sessions/{session_id}/report")
async def get_report(session_id: str, department: Optional[str] = None):
    """Final result set; department narrows it, no department means everything."""
    session = _get_session(session_id)
    try:
        report = session.report(department)
    except PhaseOrderError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return report.to_dict()


@app.delete("/api/sessions/{session_id}")
async def close_session(session_id: str):
    _get_session(session_id)
    del _sessions[session_id]
    return {"session_id": session_id, "closed": True}


# ───── Entry Point ─────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
