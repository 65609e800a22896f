import structlog
import logging
import sys
from typing import Dict, Any, Optional
import os

_service_context: Dict[str, str] = {}


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "mentor-server"
) -> None:
    """Setup structured logging configuration"""

    # Configure Python logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    _service_context.update(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
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
        add_service_context,
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


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to all log entries"""

    for key, value in _service_context.items():
        event_dict.setdefault(key, value)

    return event_dict


class SessionLogger:
    """Specialized logger for mentor session events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_gate_decision(
        self,
        session_id: str,
        length: int,
        magnitude: int,
        threshold: int,
        should_analyze: bool
    ):
        """Log the gate evaluation for one snapshot"""

        self.logger.info(
            "gate_decision",
            session_id=session_id,
            length=length,
            magnitude=magnitude,
            threshold=threshold,
            should_analyze=should_analyze
        )

    def log_analysis(
        self,
        session_id: str,
        success: bool,
        duration_ms: Optional[float] = None,
        result_chars: Optional[int] = None,
        error: Optional[str] = None
    ):
        """Log an inference gateway call"""

        log = self.logger.info if success else self.logger.warning
        log(
            "analysis",
            session_id=session_id,
            success=success,
            duration_ms=duration_ms,
            result_chars=result_chars,
            error=error
        )

    def log_store_write(
        self,
        session_id: str,
        baseline_chars: int,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log a durable baseline write"""

        log = self.logger.info if success else self.logger.error
        log(
            "store_write",
            session_id=session_id,
            baseline_chars=baseline_chars,
            success=success,
            error=error
        )


# Global logger instance
session_logger = SessionLogger("mentor.session")


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

        session_logger.logger.debug(
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

        session_logger.logger.debug(
            "metric",
            metric_type="counter",
            name=name,
            value=value,
            tags=tags or {}
        )

    def set_gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        """Set a gauge metric"""

        self.metrics[name] = value

        session_logger.logger.debug(
            "metric",
            metric_type="gauge",
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
                # Counter or gauge
                summary[key] = value

        return summary

    def reset(self):
        """Drop all recorded metrics"""
        self.metrics.clear()


# Global metrics collector
metrics = MetricsCollector()
