"""
FastAPI server for the DISCO! matching service.

Exposes:
  - GET /health - Health check
  - GET /matches/{user_id} - Ranked match candidates
  - GET /matches/{user_id}/{matched_user_id}/status - Current match status
  - POST /matches/{user_id}/{matched_user_id} - Accept / reject / block
  - POST /matches/{user_id}/{matched_user_id}/request - Send a match request
  - POST /matches/{user_id}/{matched_user_id}/report - Report a match
  - GET|PUT /preferences/{user_id} - Match preferences
  - GET /docs - Interactive API documentation (Swagger UI)
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException, Request, status, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from functools import lru_cache
from pydantic import BaseModel, Field
from typing import Dict, Any, List, Literal, Optional, Annotated
import time

# Import configuration (loads .env automatically)
from disco.config import config, validate_config

# Import logging setup
from disco.utils.logging_config import logger, setup_logging

from disco.models import MAX_AGE, MIN_AGE, MatchStatus
from disco.services.match_orchestrator import MatchOrchestrator, create_match_orchestrator
from disco.utils.errors import (
    GraphExecutionError,
    InvalidInputError,
    MatchBlockedError,
    StoreUnavailableError,
    UserNotFoundError,
)

# Setup logging
setup_logging(debug=config.DEBUG)

# ============================================================
# VALIDATE CONFIGURATION AT STARTUP
# ============================================================
try:
    config_status = validate_config()
    logger.info("Configuration validated successfully")
    for key, value in config_status.items():
        logger.info(f"  {key}: {value}")
except ValueError as e:
    logger.error(f"Configuration error: {e}")
    exit(1)

# ============================================================
# FASTAPI APPLICATION
# ============================================================
app = FastAPI(
    title="DISCO! Matching Service",
    description="Proximity and preference based matching, match decisions and chat hand-off",
    version="1.0.0",
)

origins = [
    "http://localhost:3000",  # Next.js dev
    "http://localhost:5173",  # Vite dev
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================
# REQUEST/RESPONSE MODELS
# ============================================================
ACTION_TO_STATUS = {
    "accept": MatchStatus.ACCEPTED,
    "reject": MatchStatus.REJECTED,
    "block": MatchStatus.BLOCKED,
}


class MatchActionRequest(BaseModel):
    """
    Request body for POST /matches/{user_id}/{matched_user_id}.

    Attributes:
        action (str): One of 'accept', 'reject', 'block'
    """
    action: Literal["accept", "reject", "block"]


class ReportRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class AgeRangeBody(BaseModel):
    min: int = Field(18, ge=MIN_AGE, le=MAX_AGE)
    max: int = Field(99, ge=MIN_AGE, le=MAX_AGE)


class PreferencesRequest(BaseModel):
    """
    Request body for PUT /preferences/{user_id}.

    Every field is optional; absent fields take their defaults.
    """
    maxDistance: Optional[float] = Field(None, gt=0)
    ageRange: Optional[AgeRangeBody] = None
    activityTypes: Optional[List[str]] = None
    availability: Optional[List[str]] = None
    gender: Optional[List[str]] = None
    lookingFor: Optional[List[str]] = None
    relationshipType: Optional[List[str]] = None
    verifiedOnly: Optional[bool] = None
    withPhoto: Optional[bool] = None
    privacyMode: Optional[Literal["standard", "strict"]] = None
    timeWindow: Optional[Literal["anytime", "today", "thisWeek", "thisMonth"]] = None
    useBluetoothProximity: Optional[bool] = None


class ServiceResponse(BaseModel):
    """
    Common response envelope.

    Attributes:
        success (bool): Whether the operation succeeded
        data (dict): Operation output
        error (Optional[str]): Error message if something went wrong
    """
    success: bool
    data: Dict[str, Any] = {}
    error: Optional[str] = None


# ============================================================
# DEPENDENCIES
# ============================================================
@lru_cache(maxsize=1)
def get_orchestrator() -> MatchOrchestrator:
    """Process-wide orchestrator wired to Firestore and the chat backend."""
    return create_match_orchestrator(config)


async def verify_service_token(
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    """Check the shared service token when one is configured."""
    if config.SERVICE_TOKEN:
        expected = f"Bearer {config.SERVICE_TOKEN}"
        if authorization != expected:
            logger.warning("Unauthorized request: invalid or missing token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized",
            )


Orchestrator = Annotated[MatchOrchestrator, Depends(get_orchestrator)]
protected = [Depends(verify_service_token)]


# ============================================================
# MIDDLEWARE
# ============================================================
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """
    Middleware to track request processing time.

    Adds X-Process-Time header to all responses showing how long request took.
    """
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# ============================================================
# ROUTES
# ============================================================

@app.get("/health", tags=["System"])
async def health_check() -> Dict[str, str]:
    """
    Health check endpoint.

    Returns:
        dict: {"status": "healthy"}
    """
    return {"status": "healthy"}


@app.get("/matches/{user_id}", response_model=ServiceResponse, tags=["Matches"],
         dependencies=protected)
def find_matches(user_id: str, orchestrator: Orchestrator) -> ServiceResponse:
    """
    Ranked match candidates for a user, best first.

    Candidates without a known location are left out rather than scored 0.
    """
    start_time = time.time()
    matches = orchestrator.find_matches(user_id)
    logger.info(
        "find-matches summary: matches=%s time=%.2fs",
        len(matches),
        time.time() - start_time,
    )
    return ServiceResponse(
        success=True,
        data={"matches": [m.model_dump(mode="json") for m in matches]},
    )


@app.get("/matches/{user_id}/{matched_user_id}/status", response_model=ServiceResponse,
         tags=["Matches"], dependencies=protected)
def get_match_status(
    user_id: str, matched_user_id: str, orchestrator: Orchestrator
) -> ServiceResponse:
    """Current status of a pair; 'pending' when nothing is recorded."""
    match_status = orchestrator.get_match_status(user_id, matched_user_id)
    return ServiceResponse(success=True, data={"status": match_status.value})


@app.post("/matches/{user_id}/{matched_user_id}", response_model=ServiceResponse,
          tags=["Matches"], dependencies=protected)
def update_match_status(
    user_id: str,
    matched_user_id: str,
    request: MatchActionRequest,
    orchestrator: Orchestrator,
) -> ServiceResponse:
    """
    Accept, reject or block a match.

    A mutual acceptance opens a chat room. If that fails the decision is
    still recorded and the failure is returned in data.chat_room_error.
    """
    result = orchestrator.update_match_status(
        user_id, matched_user_id, ACTION_TO_STATUS[request.action]
    )
    return ServiceResponse(success=True, data=result.model_dump(mode="json"))


@app.post("/matches/{user_id}/{matched_user_id}/request", response_model=ServiceResponse,
          tags=["Matches"], dependencies=protected)
def send_match_request(
    user_id: str, matched_user_id: str, orchestrator: Orchestrator
) -> ServiceResponse:
    match = orchestrator.send_match_request(user_id, matched_user_id)
    return ServiceResponse(success=True, data={"match": match.model_dump(mode="json")})


@app.post("/matches/{user_id}/{matched_user_id}/report", response_model=ServiceResponse,
          tags=["Matches"], dependencies=protected)
def report_match(
    user_id: str,
    matched_user_id: str,
    request: ReportRequest,
    orchestrator: Orchestrator,
) -> ServiceResponse:
    report = orchestrator.report_match(user_id, matched_user_id, request.reason)
    return ServiceResponse(success=True, data={"report_id": report.id})


@app.get("/preferences/{user_id}", response_model=ServiceResponse,
         tags=["Preferences"], dependencies=protected)
def get_preferences(user_id: str, orchestrator: Orchestrator) -> ServiceResponse:
    preferences = orchestrator.get_preferences(user_id)
    return ServiceResponse(success=True, data={"preferences": preferences.to_document()})


@app.put("/preferences/{user_id}", response_model=ServiceResponse,
         tags=["Preferences"], dependencies=protected)
def set_preferences(
    user_id: str, request: PreferencesRequest, orchestrator: Orchestrator
) -> ServiceResponse:
    """Replace a user's match preferences."""
    raw = request.model_dump(exclude_none=True)
    age_range = raw.get("ageRange")
    if age_range and age_range["min"] > age_range["max"]:
        raise InvalidInputError("ageRange.min must not exceed ageRange.max")
    preferences = orchestrator.set_preferences(user_id, raw)
    return ServiceResponse(success=True, data={"preferences": preferences.to_document()})


@app.get("/", tags=["System"])
async def root() -> Dict[str, str]:
    """
    Root endpoint.

    Returns information about the API and how to access documentation.
    """
    return {
        "service": "DISCO! Matching Service",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


# ============================================================
# ERROR HANDLERS
# ============================================================

def _error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "status_code": status_code,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTP exceptions with consistent error response format.
    """
    logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
    return _error_response(exc.status_code, exc.detail)


@app.exception_handler(UserNotFoundError)
async def user_not_found_handler(request: Request, exc: UserNotFoundError):
    logger.info("User not found: %s", exc.user_id)
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(MatchBlockedError)
async def match_blocked_handler(request: Request, exc: MatchBlockedError):
    return _error_response(status.HTTP_409_CONFLICT, str(exc))


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Store unavailable: {str(exc)}")
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Match store unavailable")


@app.exception_handler(GraphExecutionError)
async def graph_error_handler(request: Request, exc: GraphExecutionError):
    logger.error(f"Matching graph failed: {str(exc)}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Matching failed")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.

    Never returns the internal error message to the client; use logging instead.
    """
    logger.error(f"Unhandled exception: {str(exc)}")
    logger.exception("Full traceback:")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# ============================================================
# STARTUP EVENTS
# ============================================================

@app.on_event("startup")
async def startup_event():
    """
    Run when the application starts.

    Configuration is already validated above (in module-level code),
    but we log it again here for visibility.
    """
    logger.info("=" * 60)
    logger.info("DISCO! Matching Service Starting Up")
    logger.info("=" * 60)
    logger.info(f"Firebase Project: {config.FIREBASE_PROJECT_ID}")
    logger.info(f"Chat Service: {config.CHAT_SERVICE_URL}")
    logger.info(f"Debug Mode: {config.DEBUG}")
    logger.info(f"Max Candidates: {config.MAX_CANDIDATES}")
    logger.info(f"Scoring Workers: {config.SCORING_WORKERS}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("DISCO! Matching Service Shutting Down")


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    """
    Run with: python -m uvicorn disco.server:app --reload
    """
    import uvicorn
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="info" if not config.DEBUG else "debug"
    )
