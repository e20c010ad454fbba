"""Protocol logging for provider traffic.

Records each HTTP exchange with the identity provider and writes it to the
``authsession.protocol`` logger, redacting credentials, codes, and tokens
unless TRACE output has been explicitly enabled.

Log levels:
- ERROR: Only log errors
- INFO: Log one line per exchange (method, URL, status, timing)
- DEBUG: Add request and response headers
- TRACE: Add request and response bodies (requires explicit enable)
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any

import httpx

# Custom log level for TRACE (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

logger = logging.getLogger("authsession.protocol")

# Longest body written at TRACE level
MAX_BODY_LOG = 2000


class LogLevel(IntEnum):
    """Protocol logging levels."""

    ERROR = logging.ERROR
    INFO = logging.INFO
    DEBUG = logging.DEBUG
    TRACE = TRACE


_SENSITIVE_PARAMS = (
    "client_secret",
    "code",
    "access_token",
    "refresh_token",
    "id_token",
    "state",
    "nonce",
)

SENSITIVE_PATTERNS = [
    # Query strings and form bodies
    *[
        (re.compile(rf"(\b{name}=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]")
        for name in _SENSITIVE_PARAMS
    ],
    # JSON fields
    *[
        (re.compile(rf'"({name})"\s*:\s*"[^"]+"', re.IGNORECASE), r'"\1": "[REDACTED]"')
        for name in _SENSITIVE_PARAMS
    ],
    # HTTP headers, with or without the header name
    (re.compile(r"(Authorization:\s*(?:Bearer|Basic)\s+)[^\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"^((?:Bearer|Basic)\s+)[^\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"((?:Set-)?Cookie:\s*)[^\r\n]+", re.IGNORECASE), r"\1[REDACTED]"),
]


def redact_sensitive(text: str) -> str:
    """Redact sensitive information from text.

    Args:
        text: Text that may contain sensitive data.

    Returns:
        Text with sensitive data redacted.
    """
    result = text
    for pattern, replacement in SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


@dataclass
class HTTPExchange:
    """A single request/response exchange with the provider."""

    method: str
    url: str
    request_headers: dict[str, str] = field(default_factory=dict)
    request_body: str | None = None
    response_status: int | None = None
    response_headers: dict[str, str] = field(default_factory=dict)
    response_body: str | None = None
    duration_ms: float | None = None
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def format_log(self, level: LogLevel, include_sensitive: bool = False) -> str:
        """Format the exchange for logging.

        Args:
            level: Log level determines how much detail to include.
            include_sensitive: If True, include raw sensitive data.

        Returns:
            Formatted log string.
        """

        def show(value: str) -> str:
            return value if include_sensitive else redact_sensitive(value)

        status = self.response_status or "ERROR"
        lines = [f"HTTP {self.method} {show(self.url)} -> {status}"]
        if self.duration_ms is not None:
            lines.append(f"  Duration: {self.duration_ms:.1f}ms")
        if self.error:
            lines.append(f"  Error: {self.error}")

        if level <= LogLevel.DEBUG:
            lines.append("  Request Headers:")
            lines.extend(f"    {name}: {show(value)}" for name, value in self.request_headers.items())
            if self.response_headers:
                lines.append("  Response Headers:")
                lines.extend(f"    {name}: {show(value)}" for name, value in self.response_headers.items())

        if level <= LogLevel.TRACE:
            for label, body in (("Request Body", self.request_body), ("Response Body", self.response_body)):
                if body:
                    body = show(body)
                    suffix = "..." if len(body) > MAX_BODY_LOG else ""
                    lines.append(f"  {label}:")
                    lines.append(f"    {body[:MAX_BODY_LOG]}{suffix}")

        return "\n".join(lines)


class ProtocolLogger:
    """Configurable logger for provider HTTP exchanges."""

    def __init__(
        self,
        level: LogLevel = LogLevel.INFO,
        trace_enabled: bool = False,
    ) -> None:
        """Initialize the protocol logger.

        Args:
            level: Minimum log level.
            trace_enabled: Whether TRACE level is enabled (for sensitive data).
        """
        self.level = level
        self.trace_enabled = trace_enabled

    @property
    def effective_level(self) -> LogLevel:
        """Get effective log level (TRACE only if explicitly enabled)."""
        if self.level == LogLevel.TRACE and not self.trace_enabled:
            return LogLevel.DEBUG
        return self.level

    def log_exchange(self, exchange: HTTPExchange) -> None:
        """Write an exchange to the protocol logger."""
        effective = self.effective_level
        include_sensitive = self.trace_enabled and self.level <= LogLevel.TRACE

        if effective <= LogLevel.DEBUG:
            logger.debug(exchange.format_log(effective, include_sensitive))
        elif effective <= LogLevel.INFO:
            logger.info(exchange.format_log(effective, include_sensitive))

        if exchange.error:
            logger.error(f"HTTP error: {exchange.method} {redact_sensitive(exchange.url)}: {exchange.error}")


def _decode_body(content: bytes | None) -> str | None:
    if not content:
        return None
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        return "<binary content>"


class LoggingClient(httpx.Client):
    """HTTPX client that records every exchange with a ProtocolLogger."""

    def __init__(
        self,
        protocol_logger: ProtocolLogger | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the logging client.

        Args:
            protocol_logger: ProtocolLogger to use. Uses the global one if not provided.
            **kwargs: Additional arguments passed to httpx.Client.
        """
        self._protocol_logger = protocol_logger or get_protocol_logger()
        super().__init__(**kwargs)

    @property
    def protocol_logger(self) -> ProtocolLogger:
        """Get the protocol logger."""
        return self._protocol_logger

    def send(self, request: httpx.Request, **kwargs: Any) -> httpx.Response:
        """Send a request, logging it whether it succeeds or fails."""
        exchange = HTTPExchange(
            method=request.method,
            url=str(request.url),
            request_headers=dict(request.headers),
            request_body=_decode_body(request.content),
        )
        start_time = time.perf_counter()
        try:
            response = super().send(request, **kwargs)
        except httpx.HTTPError as e:
            exchange.duration_ms = (time.perf_counter() - start_time) * 1000
            exchange.error = str(e)
            self._protocol_logger.log_exchange(exchange)
            raise

        exchange.duration_ms = (time.perf_counter() - start_time) * 1000
        exchange.response_status = response.status_code
        exchange.response_headers = dict(response.headers)
        if not kwargs.get("stream"):
            exchange.response_body = _decode_body(response.content)
        self._protocol_logger.log_exchange(exchange)
        return response


# Global protocol logger instance
_global_logger: ProtocolLogger | None = None


def get_protocol_logger() -> ProtocolLogger:
    """Get the global protocol logger instance."""
    global _global_logger
    if _global_logger is None:
        _global_logger = ProtocolLogger()
    return _global_logger


def set_protocol_logger(logger_instance: ProtocolLogger) -> None:
    """Set the global protocol logger instance."""
    global _global_logger
    _global_logger = logger_instance


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    trace_enabled: bool = False,
    log_file: str | None = None,
) -> ProtocolLogger:
    """Configure authsession logging.

    Sets up handlers on the ``authsession`` logger hierarchy and installs a
    global ProtocolLogger.

    Args:
        level: Log level (ERROR, INFO, DEBUG, TRACE) or string name.
        trace_enabled: Whether to enable TRACE level (includes sensitive data).
        log_file: Optional file path to write logs to.

    Returns:
        Configured ProtocolLogger.
    """
    if isinstance(level, str):
        level = LogLevel.__members__.get(level.upper(), LogLevel.INFO)

    root = logging.getLogger("authsession")
    root.setLevel(level)
    root.handlers.clear()

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    protocol_logger = ProtocolLogger(level=level, trace_enabled=trace_enabled)
    set_protocol_logger(protocol_logger)

    if trace_enabled:
        root.warning("TRACE logging enabled - sensitive data (tokens, secrets) will be logged!")

    return protocol_logger
