"""
Logging configuration for autopass.

Provides structured JSON logging and an audit logger for credential and
plan events.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional, TextIO, Union

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line. Every line carries the service name and
    deployment environment so module and audit logs from several hosts can
    share one sink.
    """

    def __init__(self, service: str = "autopass", environment: Optional[str] = None):
        super().__init__()
        self.service = service
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "ts": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "service": self.service,
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        if self.environment:
            log_data["env"] = self.environment

        # Request correlation (HTTP service only)
        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Audit records carry their payload in extra_fields
        extra = getattr(record, "extra_fields", None)
        if extra:
            log_data["audit"] = extra

        # bytes and keys fall back to str()
        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Logger for domain events.

    Every credential change, plan transition and rejected call goes
    through here so the trail can be reconstructed from logs alone.
    """

    def __init__(self, name: str = "autopass.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return

        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def credential_changed(
        self,
        account: str,
        namespace_id: int,
        old_key: Optional[str],
        new_key: Optional[str]
    ) -> None:
        """Log an install, rebind or uninstall."""
        self._log(
            logging.INFO,
            "CREDENTIAL_CHANGED",
            account=account,
            namespace_id=namespace_id,
            old_key=old_key,
            new_key=new_key,
            message=f"Credential {namespace_id} changed for {account}"
        )

    def signature_checked(
        self,
        account: str,
        namespace_id: int,
        valid: bool,
        context: str
    ) -> None:
        """Log the outcome of a signature check."""
        self._log(
            logging.INFO if valid else logging.WARNING,
            "SIGNATURE_CHECKED",
            account=account,
            namespace_id=namespace_id,
            valid=valid,
            context=context,
            message=f"{context} signature {'accepted' if valid else 'rejected'} for {account}"
        )

    def plan_created(
        self,
        plan_id: int,
        token_in: str,
        token_out: str,
        amount: int,
        interval: int
    ) -> None:
        self._log(
            logging.INFO,
            "PLAN_CREATED",
            plan_id=plan_id,
            token_in=token_in,
            token_out=token_out,
            amount=amount,
            interval=interval,
            message=f"Plan {plan_id} created"
        )

    def plan_executed(
        self,
        plan_id: int,
        endpoint: str,
        executed_at: int
    ) -> None:
        self._log(
            logging.INFO,
            "PLAN_EXECUTED",
            plan_id=plan_id,
            endpoint=endpoint,
            executed_at=executed_at,
            message=f"Plan {plan_id} executed via {endpoint}"
        )

    def plan_cancelled(self, plan_id: int) -> None:
        self._log(
            logging.INFO,
            "PLAN_CANCELLED",
            plan_id=plan_id,
            message=f"Plan {plan_id} cancelled"
        )

    def dex_whitelist_updated(self, endpoint: str, allowed: bool) -> None:
        self._log(
            logging.INFO,
            "DEX_WHITELIST_UPDATED",
            endpoint=endpoint,
            allowed=allowed,
            message=f"Endpoint {endpoint} {'whitelisted' if allowed else 'removed'}"
        )

    def call_rejected(
        self,
        operation: str,
        reason: str,
        **details
    ) -> None:
        """Log a call stopped by a precondition or authorization check."""
        self._log(
            logging.WARNING,
            "CALL_REJECTED",
            operation=operation,
            reason=reason,
            **details,
            message=f"{operation} rejected: {reason}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: Union[str, int] = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None,
    environment: Optional[str] = None
) -> None:
    """
    Configure root logging for the service or the CLI.

    Args:
        level: Log level name or number
        json_format: JSON lines (recommended for production) or plain text
        log_file: Optional file path that receives the same records
        stream: Console stream (stdout by default; the CLI passes stderr
            so its JSON output stays clean)
        environment: Deployment environment stamped on JSON lines
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Replace whatever an earlier call installed
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter(environment=environment)
    else:
        formatter = logging.Formatter(
            '%(asctime)s %(levelname)-8s %(name)s: %(message)s'
        )

    # Console
    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Optional file sink
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
