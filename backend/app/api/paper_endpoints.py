# app/api/paper_endpoints.py
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from backend.app import config
from backend.app.auth.dependencies import optional_authenticated_user, require_researcher
from backend.app.auth.rate_limiting import interaction_rate_limit, limiter, papers_rate_limit
from backend.app.auth.schemas import AuthContext
from backend.app.core.feed_service import FeedRequest, FeedService
from backend.app.core.paper_service import InvalidRatingError, PaperNotFoundError, PaperService
from backend.app.dependencies import get_feed_service_dep, get_paper_service_dep
from backend.app.schemas.papers import Envelope, ReviewRequest
from backend.app.utils.request_meta import search_metadata

router = APIRouter(prefix="/papers", tags=["papers"])
logger = logging.getLogger(__name__)


def _success(message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    envelope = Envelope(success=True, message=message, data=data)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(envelope))


def _failure(status_code: int, message: str) -> JSONResponse:
    envelope = Envelope(success=False, message=message, data=None)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(envelope))


def _pagination_error(page: int, limit: int) -> Optional[JSONResponse]:
    if page < 1:
        return _failure(400, "page must be at least 1")
    if limit < 1 or limit > config.PAPERS_MAX_LIMIT:
        return _failure(400, f"limit must be between 1 and {config.PAPERS_MAX_LIMIT}")
    return None


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


@router.get("", response_model=Envelope)
@limiter.limit(papers_rate_limit)
async def list_papers(
    request: Request,
    page: int = 1,
    limit: int = Query(default=config.PAPERS_DEFAULT_LIMIT),
    field_id: Optional[int] = Query(default=None, alias="fieldId"),
    search: Optional[str] = None,
    feed_service: FeedService = Depends(get_feed_service_dep),
    auth_context: Optional[AuthContext] = Depends(optional_authenticated_user),
):
    invalid = _pagination_error(page, limit)
    if invalid is not None:
        return invalid

    feed_request = FeedRequest(
        page=page,
        limit=limit,
        field_id=field_id,
        search=_clean_text(search),
        user_id=auth_context.user_id if auth_context else None,
    )
    try:
        data = await feed_service.list_papers(feed_request, metadata=search_metadata(request))
    except Exception:
        logger.exception("Get papers failed")
        return _failure(500, "Failed to retrieve papers")

    message = "Recommended papers retrieved" if data.isRecommendation else "Papers retrieved successfully"
    return _success(message, data)


@router.get("/search/query", response_model=Envelope)
@limiter.limit(papers_rate_limit)
async def search_papers(
    request: Request,
    q: Optional[str] = None,
    page: int = 1,
    limit: int = Query(default=config.PAPERS_DEFAULT_LIMIT),
    paper_service: PaperService = Depends(get_paper_service_dep),
    auth_context: Optional[AuthContext] = Depends(optional_authenticated_user),
):
    query = _clean_text(q)
    if not query:
        return _failure(400, "Search query is required")
    invalid = _pagination_error(page, limit)
    if invalid is not None:
        return invalid

    try:
        data = await paper_service.search_papers(
            query,
            page=page,
            limit=limit,
            user_id=auth_context.user_id if auth_context else None,
            metadata=search_metadata(request),
        )
    except Exception:
        logger.exception("Paper search failed")
        return _failure(500, "Search failed")

    return _success("Search completed successfully", data)


@router.get("/top-rated/by-field", response_model=Envelope)
@limiter.limit(papers_rate_limit)
async def top_rated_by_field(
    request: Request,
    limit: int = Query(default=config.TOP_RATED_DEFAULT_LIMIT),
    paper_service: PaperService = Depends(get_paper_service_dep),
):
    _ = request  # required for rate limiting decorator
    if limit < 1 or limit > config.PAPERS_MAX_LIMIT:
        return _failure(400, f"limit must be between 1 and {config.PAPERS_MAX_LIMIT}")

    try:
        data = await paper_service.top_rated_by_field(limit)
    except Exception:
        logger.exception("Top-rated lookup failed")
        return _failure(500, "Failed to retrieve top-rated papers")

    return _success("Top-rated papers retrieved successfully", data)


@router.get("/{paper_id}", response_model=Envelope)
@limiter.limit(papers_rate_limit)
async def get_paper(
    request: Request,
    paper_id: int,
    paper_service: PaperService = Depends(get_paper_service_dep),
):
    _ = request  # required for rate limiting decorator
    try:
        data = await paper_service.get_paper(paper_id)
    except PaperNotFoundError:
        return _failure(404, "Paper not found")
    except Exception:
        logger.exception("Get paper %s failed", paper_id)
        return _failure(500, "Failed to retrieve paper")

    return _success("Paper retrieved successfully", data)


@router.post("/{paper_id}/download", response_model=Envelope)
@limiter.limit(interaction_rate_limit)
async def record_download(
    request: Request,
    paper_id: int,
    paper_service: PaperService = Depends(get_paper_service_dep),
    auth_context: AuthContext = Depends(require_researcher),
):
    _ = request  # required for rate limiting decorator
    researcher_id = auth_context.researcher_id

    try:
        data = await paper_service.record_download(paper_id, researcher_id)
    except PaperNotFoundError:
        return _failure(404, "Paper not found")
    except Exception:
        logger.exception("Download for paper %s failed", paper_id)
        return _failure(500, "Failed to record download")

    logger.info(
        "Download recorded",
        extra={"json_fields": {"event": "paper_download", "paper_id": paper_id, "researcher_id": researcher_id}},
    )
    return _success("Download recorded successfully", data)


@router.post("/{paper_id}/review", response_model=Envelope)
@limiter.limit(interaction_rate_limit)
async def submit_review(
    request: Request,
    paper_id: int,
    payload: ReviewRequest,
    paper_service: PaperService = Depends(get_paper_service_dep),
    auth_context: AuthContext = Depends(require_researcher),
):
    _ = request  # required for rate limiting decorator
    researcher_id = auth_context.researcher_id

    try:
        created = await paper_service.submit_review(paper_id, researcher_id, payload.rating)
    except InvalidRatingError as exc:
        return _failure(400, str(exc))
    except PaperNotFoundError:
        return _failure(404, "Paper not found")
    except Exception:
        logger.exception("Review for paper %s failed", paper_id)
        return _failure(500, "Failed to submit review")

    if created:
        return _success("Review submitted successfully", status_code=201)
    return _success("Review updated successfully")
