"""
FastAPI Main Application
-----------------------
This is the main application file that defines the FastAPI app and endpoints.
It exposes the deduplication engine to the reviewer UI: scoring, detection
passes, duplicate pair review, contact comparison and merging.
"""

import json
import time
import logging
from typing import List, Optional

from fastapi import FastAPI, UploadFile, File, HTTPException, Form, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from contact_dedup import __version__
from contact_dedup.config import load_settings
from contact_dedup.core.exceptions import (
    IncompleteMergeDecisionError,
    InvalidInputError,
    NotFoundError,
    StateConflictError,
)
from contact_dedup.core.scoring import classify, confidence_level
from contact_dedup.core.service import DeduplicationService
from contact_dedup.models.data_models import (
    CONFIDENCE_LEVEL_COLORS,
    CONFIDENCE_LEVEL_LABELS,
    CONFIDENCE_THRESHOLDS,
    DUPLICATE_STATUS_LABELS,
    MATCH_TYPE_LABELS,
    BulkMergeRequest,
    BulkMergeResult,
    Contact,
    ContactComparison,
    ContactImportResponse,
    DismissRequest,
    DisplayTables,
    DuplicatePair,
    DuplicatePairListResponse,
    DuplicateScanResult,
    DuplicateStatus,
    MergeRequest,
    MergeResult,
    ScoreRequest,
    ScoreResponse,
)
from contact_dedup.storage.loader import ContactColumnMap, contacts_from_dataframe, read_contacts_file
from contact_dedup.storage.memory import InMemoryContactRepository, InMemoryDuplicatePairRepository

settings = load_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Contact Deduplication API",
    description="API for detecting duplicate contacts and planning their merges",
    version=__version__
)

# Add CORS middleware to allow cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.service = DeduplicationService(
    InMemoryContactRepository(),
    InMemoryDuplicatePairRepository(),
    settings,
)


def get_service() -> DeduplicationService:
    return app.state.service


# --- Error mapping ---

def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": type(exc).__name__})


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return _error_response(400, exc)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error_response(404, exc)


@app.exception_handler(StateConflictError)
async def state_conflict_handler(request: Request, exc: StateConflictError):
    logger.info(f"State conflict on pair {exc.pair_id}: {exc}")
    return _error_response(409, exc)


@app.exception_handler(IncompleteMergeDecisionError)
async def incomplete_merge_handler(request: Request, exc: IncompleteMergeDecisionError):
    return _error_response(422, exc)


# --- Endpoints ---

@app.get("/")
async def root():
    """Root endpoint that returns a simple health check message."""
    return {"message": "Contact Deduplication API is running!"}


@app.get("/api/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": time.time()
    }


@app.get("/api/display-tables", response_model=DisplayTables)
async def display_tables():
    """Static label and color tables used to render pairs and scores."""
    return DisplayTables(
        match_type_labels={k.value: v for k, v in MATCH_TYPE_LABELS.items()},
        status_labels={k.value: v for k, v in DUPLICATE_STATUS_LABELS.items()},
        confidence_level_labels={k.value: v for k, v in CONFIDENCE_LEVEL_LABELS.items()},
        confidence_level_colors={k.value: v for k, v in CONFIDENCE_LEVEL_COLORS.items()},
        thresholds=CONFIDENCE_THRESHOLDS.model_dump(),
    )


@app.post("/api/score", response_model=ScoreResponse)
async def score_pair(request: ScoreRequest):
    """Classify two contact projections without persisting anything."""
    result = classify(
        request.email1,
        request.email2,
        request.first_name1,
        request.last_name1,
        request.first_name2,
        request.last_name2,
    )
    level = confidence_level(result.score)
    threshold = request.threshold if request.threshold is not None else CONFIDENCE_THRESHOLDS.medium
    return ScoreResponse(
        score=result.score,
        match_type=result.match_type,
        match_type_label=MATCH_TYPE_LABELS[result.match_type],
        confidence_level=level,
        confidence_label=CONFIDENCE_LEVEL_LABELS[level],
        color=CONFIDENCE_LEVEL_COLORS[level],
        is_duplicate=result.score >= threshold,
    )


@app.post("/api/events/{event_id}/contacts", response_model=ContactImportResponse)
async def add_contacts(event_id: str, contacts: List[Contact]):
    """Add contacts to an event; their event_id is set from the path."""
    service = get_service()
    stored = [service.contacts.add(c.model_copy(update={"event_id": event_id})) for c in contacts]
    return ContactImportResponse(
        message=f"Imported {len(stored)} contacts",
        imported=len(stored),
        contact_ids=[c.id for c in stored],
    )


@app.post("/api/events/{event_id}/contacts/upload", response_model=ContactImportResponse)
async def upload_contacts(
    event_id: str,
    file: UploadFile = File(..., description="CSV or XLSX file of contacts."),
    column_map_json: Optional[str] = Form(None, description="JSON string of the ContactColumnMap model."),
):
    """
    Import contacts from an uploaded CSV or Excel file.

    The column map tells which header feeds which contact field; by default the
    headers email, first_name and last_name are expected.
    """
    try:
        column_map = ContactColumnMap(**json.loads(column_map_json)) if column_map_json else ContactColumnMap()
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON format for column mapping.")
    except ValueError as e:  # Pydantic validation errors
        raise HTTPException(status_code=400, detail=f"Invalid column mapping data: {str(e)}")

    content = await file.read()
    df = read_contacts_file(content, file.filename)
    logger.info(f"Loaded {len(df)} rows from {file.filename}")

    service = get_service()
    stored = [service.contacts.add(c) for c in contacts_from_dataframe(df, column_map, event_id=event_id)]
    return ContactImportResponse(
        message=f"Imported {len(stored)} contacts",
        imported=len(stored),
        contact_ids=[c.id for c in stored],
    )


@app.post("/api/events/{event_id}/scan", response_model=DuplicateScanResult)
async def scan_event(event_id: str):
    """Run a detection pass over an event's contacts and persist new pending pairs."""
    start_time = time.time()
    result = get_service().scan_for_duplicates(event_id)
    logger.info(f"Scan of event {event_id} finished in {time.time() - start_time:.2f}s")
    return result


@app.get("/api/events/{event_id}/duplicates", response_model=DuplicatePairListResponse)
async def list_duplicates(
    event_id: str,
    status: Optional[DuplicateStatus] = Query(None, description="Only pairs in this status"),
    min_confidence: int = Query(0, ge=0, le=100, description="Minimum confidence score"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=200),
):
    pairs, total = get_service().get_duplicate_pairs(
        event_id, status=status, min_confidence=min_confidence, page=page, per_page=per_page
    )
    return DuplicatePairListResponse(pairs=pairs, total=total, page=page, per_page=per_page)


@app.get("/api/duplicates/{pair_id}", response_model=DuplicatePair)
async def get_duplicate(pair_id: str):
    pair = get_service().get_duplicate_pair(pair_id)
    if pair is None:
        raise HTTPException(status_code=404, detail=f"Duplicate pair '{pair_id}' not found")
    return pair


@app.get("/api/contacts/compare", response_model=ContactComparison)
async def compare_contacts(
    contact_id_1: str = Query(...),
    contact_id_2: str = Query(...),
):
    """Side-by-side comparison of two contacts with suggested merge sources."""
    return get_service().compare_contacts(contact_id_1, contact_id_2)


@app.post("/api/duplicates/{pair_id}/merge", response_model=MergeResult)
async def merge_duplicate(pair_id: str, request: MergeRequest):
    """Merge the contacts of a pending pair using the reviewer's decisions."""
    return get_service().merge_pair(
        pair_id, request.decisions, request.user_id, survivor_id=request.survivor_id
    )


@app.post("/api/duplicates/{pair_id}/dismiss", response_model=DuplicatePair)
async def dismiss_duplicate(pair_id: str, request: DismissRequest):
    return get_service().dismiss_duplicate(pair_id, request.user_id)


@app.post("/api/events/{event_id}/bulk-merge", response_model=BulkMergeResult)
async def bulk_merge(event_id: str, request: BulkMergeRequest):
    """Auto-merge all pending pairs of an event with certain confidence."""
    return get_service().bulk_merge_exact_duplicates(event_id, request.user_id)
