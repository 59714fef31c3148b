import structlog
import logging
import sys
from typing import Dict, Any, Optional
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "context-engine"
) -> None:
    """Setup structured logging configuration"""

    # Configure Python logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    # Processors for structlog
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # Add appropriate renderer based on format
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    # Configure structlog
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Set service name in context
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


class EngineLogger:
    """Specialized logger for registry and resolution events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_load_error(self, error: Any, fatal: bool = False):
        """Log a primitive that failed to load"""

        log = self.logger.error if fatal else self.logger.warning
        log(
            "load_error",
            kind=error.kind,
            identifier=error.identifier,
            reason=error.reason,
            fatal=fatal
        )

    def log_reload(self, version: int, loaded: Dict[str, int], error_count: int):
        """Log a registry snapshot swap"""

        self.logger.info(
            "registry_reload",
            version=version,
            loaded=loaded,
            error_count=error_count
        )

    def log_resolution(
        self,
        snapshot_version: int,
        layers: int,
        conflicts: int,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log a finished resolution"""

        self.logger.info(
            "resolution",
            snapshot_version=snapshot_version,
            layers=layers,
            conflicts=conflicts,
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_scope_warning(
        self,
        persona: str,
        unavailable: Optional[list] = None,
        unrecognized: Optional[list] = None,
        degraded: bool = False
    ):
        """Log a persona tool scope warning"""

        self.logger.warning(
            "scope_violation",
            persona=persona,
            unavailable=unavailable or [],
            unrecognized=unrecognized or [],
            degraded=degraded
        )


# Global logger instance
engine_logger = EngineLogger("context_engine")


class MetricsCollector:
    """Collect and export metrics"""

    def __init__(self):
        self.metrics: Dict[str, Any] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        """Record operation latency"""

        key = f"latency.{operation}"
        if key not in self.metrics:
            self.metrics[key] = {
                "count": 0,
                "sum": 0,
                "min": float('inf'),
                "max": 0
            }

        self.metrics[key]["count"] += 1
        self.metrics[key]["sum"] += duration_ms
        self.metrics[key]["min"] = min(self.metrics[key]["min"], duration_ms)
        self.metrics[key]["max"] = max(self.metrics[key]["max"], duration_ms)

        engine_logger.logger.debug(
            "metric",
            metric_type="latency",
            operation=operation,
            duration_ms=duration_ms,
            tags=tags or {}
        )

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        """Increment a counter metric"""

        if name not in self.metrics:
            self.metrics[name] = 0
        self.metrics[name] += value

        engine_logger.logger.debug(
            "metric",
            metric_type="counter",
            name=name,
            value=value,
            tags=tags or {}
        )

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get summary of all metrics"""

        summary = {}
        for key, value in self.metrics.items():
            if isinstance(value, dict) and "count" in value:
                # Latency metric
                summary[key] = {
                    "count": value["count"],
                    "avg": value["sum"] / value["count"] if value["count"] > 0 else 0,
                    "min": value["min"] if value["min"] != float('inf') else 0,
                    "max": value["max"]
                }
            else:
                # Counter
                summary[key] = value

        return summary

    def reset(self):
        """Drop all recorded metrics"""
        self.metrics.clear()


# Global metrics collector
metrics = MetricsCollector()
