"""Invocation logger with composable output sinks.

Every invocation owns one Logger. The logger is registered with the
LogRegistry for the duration of the invocation, and the module-level
``logger`` proxy forwards to whichever logger is registered on the
calling thread. Registrations stack, so nested or concurrent
invocations (one per thread) never see each other's output.
"""

from __future__ import annotations

import contextlib
import contextvars
import threading
from abc import abstractmethod
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from opentelemetry.proto.logs.v1 import logs_pb2
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from pydantic import Field, PrivateAttr, model_validator

from devharness.core.base import BaseConfig


class LogRegistry:
    """Per-thread stack of registered invocation loggers.

    ``registered()`` is the only supported way to attach a logger:
    it guarantees the logger is detached and closed on every exit
    path, including exceptions.
    """

    def __init__(self):
        self._local = threading.local()

    def _stack(self) -> list[Logger]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = []
            self._local.stack = stack
        return stack

    def register(self, log: Logger) -> None:
        """Make ``log`` the active logger for the calling thread."""
        self._stack().append(log)

    def unregister(self) -> Logger | None:
        """Detach the most recently registered logger.

        Returns:
            The detached logger, or None if nothing was registered
        """
        stack = self._stack()
        return stack.pop() if stack else None

    def current(self) -> Logger | None:
        stack = self._stack()
        return stack[-1] if stack else None

    @contextlib.contextmanager
    def registered(self, log: Logger) -> Iterator[Logger]:
        """Register ``log`` for the duration of a ``with`` block.

        On exit the log is closed and then unregistered, even if
        closing fails.
        """
        self.register(log)
        token = _active_registry.set(self)
        try:
            yield log
        finally:
            try:
                log.close()
            finally:
                self.unregister()
                _active_registry.reset(token)


_registry = LogRegistry()

# Registry whose registered() block the caller is inside
_active_registry: contextvars.ContextVar[LogRegistry | None] = (
    contextvars.ContextVar("devharness_log_registry", default=None)
)


def get_log_registry() -> LogRegistry:
    """Return the process-wide registry."""
    return _registry


def active_log_registry() -> LogRegistry:
    """Return the registry of the innermost registered() block.

    Falls back to the process-wide registry outside any block.
    """
    return _active_registry.get() or _registry


class _LoggerProxy:
    """Forwards attribute access to the current thread's logger.

    The logger is looked up in the active registry, so loggers
    registered on a private LogRegistry are reached too. Before any
    logger is registered, every method is a no-op.
    """
    def __getattr__(self, name):
        current = active_log_registry().current()
        if current is None:
            def _noop(*args, **kwargs):  # noqa: ARG001
                return contextlib.nullcontext()
            return _noop
        return getattr(current, name)


# Module-level logger - this is what gets imported everywhere
logger = _LoggerProxy()


class LevelFilteringExporter(SpanExporter):
    """Span exporter that filters spans by log level.

    Wraps another exporter and only forwards spans that meet the
    minimum level threshold.
    """

    # Level names to OpenTelemetry severity numbers. Used for level
    # filtering and for display.
    _level_thresholds = {
        'spew': logs_pb2.SEVERITY_NUMBER_TRACE,    # 1 - most verbose
        'trace': logs_pb2.SEVERITY_NUMBER_TRACE3,  # 3
        'debug': logs_pb2.SEVERITY_NUMBER_DEBUG,   # 5
        'info': logs_pb2.SEVERITY_NUMBER_INFO,     # 9
        'warn': logs_pb2.SEVERITY_NUMBER_WARN,     # 13
        'error': logs_pb2.SEVERITY_NUMBER_ERROR,   # 17
        'fatal': logs_pb2.SEVERITY_NUMBER_FATAL,   # 21
    }

    def __init__(self, exporter: SpanExporter, min_level: str | None):
        """Initialize filtering exporter.

        Args:
            exporter: The underlying exporter to forward spans to
            min_level: Minimum level (spew, trace, debug, info, etc.)
        """
        self._exporter = exporter
        self._min_severity = self._level_thresholds.get(
            (min_level or "info").lower(), logs_pb2.SEVERITY_NUMBER_INFO
        )

    def export(self, spans: list[ReadableSpan]) -> SpanExportResult:
        """Export spans at or above the configured severity."""
        filtered = []
        for span in spans:
            attrs = span.attributes or {}
            level_num = attrs.get(
                'logfire.level_num', logs_pb2.SEVERITY_NUMBER_INFO
            )
            if level_num >= self._min_severity:
                filtered.append(span)

        if filtered:
            return self._exporter.export(filtered)
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._exporter.force_flush(timeout_millis)


class Sink(BaseConfig):
    """Base class for log output sinks.

    Each sink is an independent output destination. Sinks are
    BaseConfig children of Logger, so close() runs as part of the
    logger's cleanup cascade.
    """

    enabled: bool = Field(default=True, description="Enable this sink")
    level: str | None = Field(
        default=None,
        description=(
            "Log level for this sink. If None, inherits from Logger.level. "
            "Valid: spew, trace, debug, info, warn, error, fatal"
        )
    )
    escape_special_characters: bool = Field(
        default=False,
        description="Escape newlines/tabs in output"
    )
    format_template: str | None = Field(
        default=None,
        description="Format template string (None for JSON spans)"
    )

    _processor: Any = PrivateAttr(default=None)

    @staticmethod
    def _escape_special_chars(text: str) -> str:
        return (text
            .replace('\\', '\\\\')
            .replace('\n', '\\n')
            .replace('\r', '\\r')
            .replace('\t', '\\t')
        )

    @staticmethod
    def _extract_span_data(span) -> dict:
        """Extract common data from span for formatting."""
        from datetime import UTC, datetime

        attrs = span.attributes or {}
        ts = datetime.fromtimestamp(span.start_time / 1e9, tz=UTC)
        filepath = attrs.get("code.filepath", "")
        lineno = attrs.get("code.lineno", "")

        level_num = attrs.get(
            "logfire.level_num", logs_pb2.SEVERITY_NUMBER_INFO
        )
        level_name = "unknown"
        for name in [
            'fatal', 'error', 'warn', 'info', 'debug', 'trace', 'spew'
        ]:
            if level_num >= LevelFilteringExporter._level_thresholds[name]:
                level_name = name
                break

        return {
            'timestamp': ts,
            'level': level_name,
            'message': attrs.get("logfire.msg", span.name),
            'filepath': filepath,
            'lineno': lineno,
            'location': f"{filepath}:{lineno}" if filepath else "",
            'function': attrs.get("code.function", ""),
        }

    def _format_span(self, span) -> str:
        """Generic span formatter using template."""
        if not self.format_template:
            import os
            return span.to_json() + os.linesep

        data = self._extract_span_data(span)
        if self.escape_special_characters:
            data['message'] = self._escape_special_chars(data['message'])

        try:
            formatted = self.format_template.format(**data)
        except KeyError as e:
            return f"ERROR: Invalid template field {e}\n"

        # Append user attributes passed as logger kwargs
        attrs = span.attributes or {}
        skip_prefixes = ('otel.', 'telemetry.', 'service.', 'process.')
        skip_keys = {
            'code.filepath', 'code.lineno', 'code.function',
            'logfire.msg', 'logfire.level_num', 'logfire.span_type',
            'logfire.msg_template', 'logfire.json_schema',
        }
        custom_attrs = {
            key: value for key, value in attrs.items()
            if key not in skip_keys
            and not any(key.startswith(p) for p in skip_prefixes)
        }
        if custom_attrs:
            attrs_str = ' '.join(
                f"{k}={repr(v)}" for k, v in sorted(custom_attrs.items())
            )
            formatted = f"{formatted} │ {attrs_str}"

        return formatted + '\n'

    @abstractmethod
    def create_processor(self, log_root: Path, run_name: str):
        """Create OpenTelemetry span processor for this sink.

        Args:
            log_root: Root directory for log files
            run_name: Name of the invocation being logged

        Returns:
            SpanProcessor instance or None if not applicable
        """
        pass

    def flush(self) -> None:
        if self._processor:
            self._processor.force_flush()

    def close(self):
        """Shut down the processor, flushing pending spans."""
        if self._processor:
            processor, self._processor = self._processor, None
            processor.shutdown()


class ConsoleSink(Sink):
    """Console output sink."""

    verbose: bool = Field(
        default=False,
        description="Show full span details"
    )
    colors: str = Field(
        default="auto",
        description="Color mode: auto, always, never"
    )

    def create_processor(self, log_root: Path, run_name: str):
        """Console is configured via logfire.configure()."""
        return None


class FileSink(Sink):
    """File output sink.

    The file written by this sink is the harness log attached to
    every invocation's results.
    """

    enabled: bool = Field(
        default=True,
        description="Enable file logging"
    )
    path: str = Field(
        default="{log_root}/{run_name}/harness.log",
        description="Log file path template"
    )
    format_template: str | None = Field(
        default="{timestamp:%Y-%m-%d %H:%M:%S.%f} [{level}] {message}",
        description="Format template string (None for JSON spans)"
    )

    _file: Any = PrivateAttr(default=None)
    _path: Path | None = PrivateAttr(default=None)

    @property
    def log_path(self) -> Path | None:
        return self._path

    def create_processor(self, log_root: Path, run_name: str):
        """Create file span exporter and processor."""
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            ConsoleSpanExporter,
        )

        log_path = Path(
            self.path.format(log_root=log_root, run_name=run_name)
        )
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._path = log_path

        # Line buffered so a crashed run still leaves a usable log
        self._file = open(log_path, "a", buffering=1, encoding="utf-8")  # noqa: SIM115

        base_exporter = ConsoleSpanExporter(
            out=self._file,
            formatter=self._format_span
        )
        filtered_exporter = LevelFilteringExporter(base_exporter, self.level)
        return BatchSpanProcessor(filtered_exporter)

    def read(self) -> bytes:
        """Flush pending spans and return the log file contents."""
        self.flush()
        if self._path is None or not self._path.exists():
            return b""
        return self._path.read_bytes()

    def close(self):
        """Close processor first, then close file.

        The processor has to flush remaining spans to the file
        before the file goes away.
        """
        super().close()

        if self._file and not self._file.closed:
            self._file.flush()
            self._file.close()


class Logger(BaseConfig):
    """Invocation logger with composable output sinks.

    Logger inherits from BaseConfig, so close() walks all sinks and
    closes them. Each logger configures its own local logfire
    instance; loggers of different invocations do not share state.
    """

    level: str = Field(
        default="info",
        description=(
            "Default log level for all sinks. Individual sinks can override. "
            "Valid: spew, trace, debug, info, warn, error, fatal"
        )
    )
    console: ConsoleSink = Field(
        default_factory=ConsoleSink,
        description="Console output configuration"
    )
    file: FileSink = Field(
        default_factory=FileSink,
        description="Harness log file configuration"
    )

    _logfire: Any = PrivateAttr(default=None)

    @model_validator(mode='after')
    def _cascade_level_to_sinks(self) -> 'Logger':
        """Cascade default level to sinks that don't set their own."""
        for sink in [self.console, self.file]:
            if sink.level is None:
                sink.level = self.level
        return self

    def setup(self, log_root: Path, run_name: str) -> Logger:
        """Initialize all enabled sinks.

        Args:
            log_root: Root directory for log files
            run_name: Name of the invocation, used in file paths

        Returns:
            self, for chaining
        """
        for sink in [self.console, self.file]:
            if sink.enabled:
                sink._processor = sink.create_processor(log_root, run_name)

        processors = [
            sink._processor
            for sink in [self.file]
            if sink.enabled and sink._processor
        ]

        import logfire
        from logfire import ConsoleOptions

        # logfire has no spew level; trace is its most verbose
        console_level = self.console.level
        if console_level == "spew":
            console_level = "trace"

        console_config = (
            ConsoleOptions(
                min_log_level=console_level,
                verbose=self.console.verbose,
                colors=self.console.colors,
                include_timestamps=True,
            )
            if self.console.enabled
            else False
        )

        self._logfire = logfire.configure(
            local=True,
            service_name=f"devharness-{run_name}",
            send_to_logfire=False,
            console=console_config,
            additional_span_processors=processors if processors else None,
        )
        return self

    def get_log(self) -> bytes:
        """Return everything written to the harness log so far."""
        if not self.file.enabled:
            return b""
        return self.file.read()

    def _instance(self):
        if self._logfire is None:
            import logfire
            return logfire
        return self._logfire

    def info(self, msg: str, **kwargs):
        self._instance().info(msg, **kwargs)

    def debug(self, msg: str, **kwargs):
        self._instance().debug(msg, **kwargs)

    def trace(self, msg: str, **kwargs):
        self._instance().log(
            level=LevelFilteringExporter._level_thresholds['trace'],
            msg_template=msg,
            attributes=kwargs if kwargs else None
        )

    def spew(self, msg: str, **kwargs):
        """Log very verbose spew message.

        Spew is below trace - use for command-level chatter such as
        raw fastboot output.
        """
        self._instance().log(
            level=LevelFilteringExporter._level_thresholds['spew'],
            msg_template=msg,
            attributes=kwargs if kwargs else None
        )

    def warn(self, msg: str, **kwargs):
        self._instance().warn(msg, **kwargs)

    def warning(self, msg: str, **kwargs):
        """Alias for warn()."""
        self._instance().warn(msg, **kwargs)

    def error(self, msg: str, **kwargs):
        self._instance().error(msg, **kwargs)

    def exception(self, msg: str, **kwargs):
        """Log an error with the active exception's traceback."""
        self._instance().exception(msg, **kwargs)

    def span(self, msg: str, **kwargs):
        """Create a span context manager for tracing operations.

        Usage:
            with logger.span("flash bootloader"):
                ...
        """
        return self._instance().span(msg, **kwargs)

    def log(self, level: str, msg: str, **kwargs):
        self._instance().log(level, msg, attributes=kwargs or None)


def create_logger(
    log_root: Path,
    run_name: str,
    console: ConsoleSink | None = None,
    file: FileSink | None = None,
    level: str = "info",
) -> Logger:
    """Build and set up a Logger without registering it.

    Args:
        log_root: Root directory for log files
        run_name: Name of the invocation
        console: Console sink config (or None for defaults)
        file: File sink config (or None for defaults)
        level: Default level for sinks that do not set one

    Returns:
        Logger: A ready-to-use logger
    """
    log = Logger(
        level=level,
        console=console or ConsoleSink(),
        file=file or FileSink(),
    )
    return log.setup(log_root, run_name)


__all__ = [
    "LogRegistry",
    "get_log_registry",
    "logger",
    "LevelFilteringExporter",
    "Sink",
    "ConsoleSink",
    "FileSink",
    "Logger",
    "create_logger",
]
