"""
Centralized logging configuration for the operations dashboard
Provides structured JSON logging, request correlation and timing
"""

import os
import sys
import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any
from flask import has_request_context, request, g
import traceback

_STANDARD_RECORD_FIELDS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename', 'module',
    'exc_info', 'exc_text', 'stack_info', 'lineno', 'funcName', 'created', 'msecs',
    'relativeCreated', 'thread', 'threadName', 'processName', 'process', 'message',
    'taskName',
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging
    Includes correlation ID, request context and application metadata
    """

    def __init__(self):
        super().__init__()
        self.application_name = "travel_ops"
        self.environment = os.environ.get('FLASK_ENV', 'development')

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'application': self.application_name,
            'environment': self.environment,
        }

        if has_request_context():
            if hasattr(g, 'correlation_id'):
                log_data['correlation_id'] = g.correlation_id
            log_data['request'] = {
                'method': request.method,
                'path': request.path,
                'remote_addr': request.remote_addr,
            }
            if hasattr(g, 'current_user_id'):
                log_data['user_id'] = g.current_user_id

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': traceback.format_exception(*record.exc_info)
            }

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_FIELDS
        }
        if extra_fields:
            log_data['extra'] = extra_fields

        if record.levelno in (logging.DEBUG, logging.ERROR):
            log_data['location'] = {
                'file': record.pathname,
                'function': record.funcName,
                'line': record.lineno
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


class RequestContextFilter(logging.Filter):
    """Inject correlation id and elapsed request time into log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if hasattr(g, 'correlation_id'):
                record.correlation_id = g.correlation_id
            if hasattr(g, 'request_start_time'):
                record.request_duration = datetime.now().timestamp() - g.request_start_time
        return True


def setup_logging(app=None) -> Dict[str, logging.Logger]:
    """
    Configure logging for the application
    Returns dict of configured loggers for the main components
    """
    log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
    if log_level not in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
        log_level = 'INFO'

    use_json_logging = (
        os.environ.get('USE_JSON_LOGGING', 'false').lower() == 'true' or
        os.environ.get('FLASK_ENV') == 'production'
    )

    if use_json_logging:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s in %(name)s: %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # Error file is skipped under test so runs leave no files behind
    if os.environ.get('FLASK_ENV') != 'testing':
        log_dir = os.environ.get('LOG_DIR', 'logs')
        os.makedirs(log_dir, exist_ok=True)
        error_handler = logging.FileHandler(os.path.join(log_dir, 'error.log'))
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(RequestContextFilter())
        root_logger.addHandler(error_handler)

    loggers = {}
    for name in ('app', 'services', 'utils', 'requests'):
        component_logger = logging.getLogger(name)
        component_logger.setLevel(log_level)
        loggers[name] = component_logger

    if os.environ.get('FLASK_ENV') == 'production':
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    if app:
        app.logger.info(f"Logging configured: level={log_level}, json_format={use_json_logging}")

    return loggers


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_request_start():
    """Mark the start of request processing for timing"""
    if has_request_context():
        g.request_start_time = datetime.now().timestamp()


def log_request_end(response):
    """Log request completion with timing and response info"""
    if has_request_context() and hasattr(g, 'request_start_time'):
        duration = datetime.now().timestamp() - g.request_start_time

        extra_data = {
            'method': request.method,
            'path': request.path,
            'status_code': response.status_code,
            'duration_ms': round(duration * 1000, 2),
        }
        if hasattr(g, 'current_user_id'):
            extra_data['user_id'] = g.current_user_id

        if response.status_code >= 500:
            log_level = logging.ERROR
        elif response.status_code >= 400 or duration > 5.0:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        get_logger('requests').log(log_level, f"Request completed: {request.method} {request.path}",
                                   extra=extra_data)

    return response
