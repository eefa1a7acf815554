import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.app import config
from backend.app.api import paper_endpoints
from backend.app.auth.rate_limiting import limiter, rate_limit_handler
from backend.app.dependencies import initialize_on_startup, shutdown_dependencies
from backend.app.utils.observability import configure_logging, configure_metrics
from slowapi.errors import RateLimitExceeded  # type: ignore[import]
from slowapi.middleware import SlowAPIMiddleware  # type: ignore[import]

configure_logging()

app = FastAPI(title="Paper Catalog API")
configure_metrics(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.CORS_ALLOW_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_middleware(SlowAPIMiddleware)

app.include_router(paper_endpoints.router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail), "data": None},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("query", "path", "body"))
    message = f"Invalid {location}: {first.get('msg')}" if location else "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message, "data": None})


@app.get("/")
async def read_root():
    return {"message": "Paper Catalog API"}


@app.get("/health")
async def health():
    return {"success": True, "message": "OK", "data": None}


@app.on_event("startup")
async def startup_event():
    logging.info("Application starting up, checking dependencies...")
    try:
        await initialize_on_startup()
        logging.info("Dependencies initialized successfully")
    except Exception as e:
        logging.error(f"Failed to initialize dependencies: {str(e)}")


@app.on_event("shutdown")
async def shutdown_event():
    await shutdown_dependencies()
