from __future__ import annotations

import json
import logging

import google.cloud.logging  # type: ignore[import]
from google.cloud.logging_v2.handlers import CloudLoggingHandler  # type: ignore[attr-defined]
from prometheus_client import Counter  # type: ignore[import]
from prometheus_fastapi_instrumentator import Instrumentator, metrics  # type: ignore[import]

from backend.app import config


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for console logging."""

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - simple serialization
        payload = {
            "message": record.getMessage(),
            "severity": record.levelname,
            "logger": record.name,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
        }
        if record.exc_info:
            payload["trace"] = self.formatException(record.exc_info)
        json_fields = getattr(record, "json_fields", None)
        if isinstance(json_fields, dict):
            payload.update(json_fields)
        return json.dumps(payload, default=str, separators=(",", ":"))


def configure_logging() -> None:
    """Configure application logging for Cloud Logging or JSON console output."""

    root_logger = logging.getLogger()
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    # httpx logs every outbound request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    if config.ENABLE_CLOUD_LOGGING:
        try:  # pragma: no cover - needs Google credentials
            client = google.cloud.logging.Client()
            handler = CloudLoggingHandler(client=client, name=config.CLOUD_LOGGING_LOG_NAME)
            root_logger.handlers.clear()
            root_logger.addHandler(handler)
            root_logger.setLevel(log_level)
            excluded = [name for name in config.CLOUD_LOGGING_EXCLUDED_LOGGERS if name]
            for logger_name in excluded:
                logging.getLogger(logger_name).propagate = False
            logging.getLogger(__name__).info(
                "Cloud Logging handler configured",
                extra={"json_fields": {"logName": config.CLOUD_LOGGING_LOG_NAME, "excluded": excluded}},
            )
            return
        except Exception as exc:  # pragma: no cover
            logging.getLogger(__name__).warning(
                "Failed to initialize Cloud Logging; falling back to JSON console",
                extra={"json_fields": {"error": str(exc)}},
            )

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)
    logging.getLogger(__name__).info(
        "JSON console logging configured",
        extra={"json_fields": {"logLevel": logging.getLevelName(log_level)}},
    )


_cache_hit_counter = Counter(
    "cache_hits_total",
    "Number of cache hits for paper responses",
    labelnames=("scope",),
    namespace=config.PROMETHEUS_METRICS_NAMESPACE,
    subsystem=config.PROMETHEUS_METRICS_SUBSYSTEM,
)

_cache_miss_counter = Counter(
    "cache_misses_total",
    "Number of cache misses for paper responses",
    labelnames=("scope",),
    namespace=config.PROMETHEUS_METRICS_NAMESPACE,
    subsystem=config.PROMETHEUS_METRICS_SUBSYSTEM,
)

_recommendation_fallback_counter = Counter(
    "recommendation_fallbacks_total",
    "Number of recommendation fetches that degraded to an empty ranking",
    labelnames=("reason",),
    namespace=config.PROMETHEUS_METRICS_NAMESPACE,
    subsystem=config.PROMETHEUS_METRICS_SUBSYSTEM,
)

_feed_mode_counter = Counter(
    "pages_served_total",
    "Number of listing pages composed, by feed mode",
    labelnames=("mode",),
    namespace=config.PROMETHEUS_METRICS_NAMESPACE,
    subsystem=config.PROMETHEUS_METRICS_SUBSYSTEM,
)

_search_log_counter = Counter(
    "search_log_events_total",
    "Number of search-event log attempts, by outcome",
    labelnames=("outcome",),
    namespace=config.PROMETHEUS_METRICS_NAMESPACE,
    subsystem=config.PROMETHEUS_METRICS_SUBSYSTEM,
)


def configure_metrics(app) -> None:
    """Attach Prometheus instrumentation to the FastAPI app when enabled."""

    if not config.ENABLE_PROMETHEUS_METRICS:
        logging.getLogger(__name__).info("Prometheus metrics disabled via configuration")
        return

    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[".*metrics"],
    )
    instrumentator.add(
        metrics.default(
            metric_namespace=config.PROMETHEUS_METRICS_NAMESPACE,
            metric_subsystem=config.PROMETHEUS_METRICS_SUBSYSTEM,
        )
    )
    instrumentator.instrument(
        app,
        metric_namespace=config.PROMETHEUS_METRICS_NAMESPACE,
        metric_subsystem=config.PROMETHEUS_METRICS_SUBSYSTEM,
    ).expose(app, include_in_schema=False, should_gzip=True)
    logging.getLogger(__name__).info(
        "Prometheus metrics endpoint exposed",
        extra={
            "json_fields": {
                "namespace": config.PROMETHEUS_METRICS_NAMESPACE,
                "subsystem": config.PROMETHEUS_METRICS_SUBSYSTEM,
            }
        },
    )


def record_cache_hit(scope: str) -> None:
    _cache_hit_counter.labels(scope=scope).inc()


def record_cache_miss(scope: str) -> None:
    _cache_miss_counter.labels(scope=scope).inc()


def record_recommendation_fallback(reason: str) -> None:
    _recommendation_fallback_counter.labels(reason=reason).inc()


def record_feed_mode(mode: str) -> None:
    _feed_mode_counter.labels(mode=mode).inc()


def record_search_log(outcome: str) -> None:
    _search_log_counter.labels(outcome=outcome).inc()


__all__ = [
    "configure_logging",
    "configure_metrics",
    "record_cache_hit",
    "record_cache_miss",
    "record_recommendation_fallback",
    "record_feed_mode",
    "record_search_log",
]
