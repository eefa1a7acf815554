import os


def _get_bool_env(name: str, default: bool) -> bool:
	raw = os.environ.get(name)
	if raw is None:
		return default
	return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
	raw = os.environ.get(name)
	if raw is None:
		return default
	try:
		return int(raw)
	except ValueError:
		return default


def _get_float_env(name: str, default: float) -> float:
	raw = os.environ.get(name)
	if raw is None:
		return default
	try:
		return float(raw)
	except ValueError:
		return default


# Paper store
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./papers.db")
DATABASE_ECHO = _get_bool_env("DATABASE_ECHO", False)

# External recommender service (search-event sink + "for you" ranking)
RECOMMENDER_SEARCH_LOG_URL = (
	os.environ.get("RECOMMENDER_SEARCH_LOG_URL")
	or os.environ.get("RECOMMENDER_URL")
	or "http://127.0.0.1:8000/api/interaction/search"
)
RECOMMENDER_RECOMMEND_URL = os.environ.get(
	"RECOMMENDER_RECOMMEND_URL",
	RECOMMENDER_SEARCH_LOG_URL.replace("/interaction/search", "/recommend"),
)
RECOMMENDATION_TIMEOUT_SECONDS = _get_float_env("RECOMMENDATION_TIMEOUT_SECONDS", 5.0)
RECOMMENDATION_MAX_RESULTS = _get_int_env("RECOMMENDATION_MAX_RESULTS", 50)
SEARCH_LOG_TIMEOUT_SECONDS = _get_float_env("SEARCH_LOG_TIMEOUT_SECONDS", 3.0)
SEARCH_LOG_DEDUPE_SECONDS = _get_float_env("SEARCH_LOG_DEDUPE_SECONDS", 30.0)

# Listing response cache
RESULT_CACHE_TTL_SECONDS = _get_float_env("RESULT_CACHE_TTL_SECONDS", 60.0)
RESULT_CACHE_MAX_ENTRIES = _get_int_env("RESULT_CACHE_MAX_ENTRIES", 200)

# Pagination
PAPERS_DEFAULT_LIMIT = _get_int_env("PAPERS_DEFAULT_LIMIT", 12)
PAPERS_MAX_LIMIT = _get_int_env("PAPERS_MAX_LIMIT", 100)
TOP_RATED_DEFAULT_LIMIT = _get_int_env("TOP_RATED_DEFAULT_LIMIT", 3)

# Application authentication
APP_JWT_SECRET = os.environ.get("APP_JWT_SECRET") or os.environ.get("JWT_SECRET")
APP_JWT_ALGORITHM = os.environ.get("APP_JWT_ALGORITHM", "HS256")
APP_JWT_ISSUER = os.environ.get("APP_JWT_ISSUER", "paper-catalog")
APP_JWT_AUDIENCE = os.environ.get("APP_JWT_AUDIENCE", "paper-catalog")

PAPERS_RATE_LIMIT = os.environ.get("PAPERS_RATE_LIMIT", "120/minute")
INTERACTION_RATE_LIMIT = os.environ.get("INTERACTION_RATE_LIMIT", "30/minute")

CORS_ALLOW_ORIGINS = tuple(
	part.strip()
	for part in os.environ.get("CORS_ALLOW_ORIGINS", "http://localhost:3000").split(",")
	if part.strip()
)

# Observability configuration
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
ENABLE_CLOUD_LOGGING = _get_bool_env("ENABLE_CLOUD_LOGGING", False)
CLOUD_LOGGING_LOG_NAME = os.environ.get("CLOUD_LOGGING_LOG_NAME", "paper-catalog")
CLOUD_LOGGING_EXCLUDED_LOGGERS = tuple(
	part.strip()
	for part in os.environ.get("CLOUD_LOGGING_EXCLUDED_LOGGERS", "httpx").split(",")
	if part.strip()
)
ENABLE_PROMETHEUS_METRICS = _get_bool_env("ENABLE_PROMETHEUS_METRICS", False)
PROMETHEUS_METRICS_NAMESPACE = os.environ.get("PROMETHEUS_METRICS_NAMESPACE", "papers")
PROMETHEUS_METRICS_SUBSYSTEM = os.environ.get("PROMETHEUS_METRICS_SUBSYSTEM", "feed")
