"""Logging setup with structured output and per-operation timing metrics"""

import json
import logging
import logging.handlers
import time
import threading
from datetime import datetime
from typing import Dict, Any, List, Optional
from functools import wraps

from .settings import Settings, get_settings


# Attributes every LogRecord carries; anything else was passed through ``extra``
_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName',
    'getMessage'
}


class StructuredFormatter(logging.Formatter):
    """
    Custom formatter for structured JSON logging.
    
    Outputs logs in JSON format for better parsing and analysis.
    """
    
    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON"""
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        
        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info)
            }
        
        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_data['extra'] = extra_fields
        
        return json.dumps(log_data, default=str, ensure_ascii=False)


class PerformanceMetrics:
    """Track call counts and durations per operation"""
    
    def __init__(self):
        self._metrics: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
    
    def _entry(self, operation: str) -> Dict[str, Any]:
        if operation not in self._metrics:
            self._metrics[operation] = {
                'total_calls': 0,
                'successful_calls': 0,
                'failed_calls': 0,
                'retries': 0,
                'total_duration': 0.0,
                'min_duration': float('inf'),
                'max_duration': 0.0,
                'last_call': None
            }
        return self._metrics[operation]

    def record_operation(self, operation: str, duration: float, success: bool = True):
        """Record one call of an operation"""
        with self._lock:
            metrics = self._entry(operation)
            metrics['total_calls'] += 1
            metrics['total_duration'] += duration
            metrics['min_duration'] = min(metrics['min_duration'], duration)
            metrics['max_duration'] = max(metrics['max_duration'], duration)
            metrics['last_call'] = datetime.now().isoformat()
            
            if success:
                metrics['successful_calls'] += 1
            else:
                metrics['failed_calls'] += 1

    def record_retry(self, operation: str):
        """Count one retried attempt within a call"""
        with self._lock:
            self._entry(operation)['retries'] += 1

    def get_metrics(self, operation: Optional[str] = None) -> Dict[str, Any]:
        """Get metrics for one operation, or for all of them"""
        with self._lock:
            if operation:
                metrics = self._metrics.get(operation)
                return self._summarize(metrics) if metrics else {}
            return {op: self._summarize(m) for op, m in self._metrics.items()}
    
    @staticmethod
    def _summarize(metrics: Dict[str, Any]) -> Dict[str, Any]:
        summary = metrics.copy()
        calls = metrics['total_calls']
        # A call still in flight may have recorded retries already
        summary['avg_duration'] = metrics['total_duration'] / calls if calls else 0.0
        summary['success_rate'] = metrics['successful_calls'] / calls if calls else 0.0
        if not calls:
            summary['min_duration'] = 0.0
        return summary
    
    def reset(self, operation: Optional[str] = None):
        """Reset metrics"""
        with self._lock:
            if operation:
                self._metrics.pop(operation, None)
            else:
                self._metrics.clear()


# Global performance metrics instance
performance_metrics = PerformanceMetrics()


class LoggingManager:
    """
    Centralized logging configuration.
    
    Human-readable console output in development, JSON in production,
    and an optional rotating JSON file. Each call applies the given
    settings, replacing the handlers installed by the previous call and
    leaving any other root handlers alone.
    """
    
    def __init__(self):
        self.configured = False
        self.handlers: List[logging.Handler] = []
    
    def setup_logging(self, settings: Optional[Settings] = None):
        """Configure the root logger from settings"""
        settings = settings or get_settings()
        level = getattr(logging, settings.log_level)
        
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        
        for handler in self.handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self.handlers = []
        
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        if settings.is_production:
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            console_handler.setFormatter(logging.Formatter(console_format))
        self.handlers.append(console_handler)
        
        if settings.log_file:
            file_handler = logging.handlers.RotatingFileHandler(
                settings.log_file,
                maxBytes=50 * 1024 * 1024,  # 50MB
                backupCount=5
            )
            file_handler.setLevel(logging.INFO)
            file_handler.setFormatter(StructuredFormatter())
            self.handlers.append(file_handler)
        
        for handler in self.handlers:
            root_logger.addHandler(handler)
        
        self.configured = True
        
        logging.getLogger(__name__).info(
            "Logging system initialized",
            extra={
                'environment': settings.environment,
                'log_level': settings.log_level,
                'structured_logging': settings.is_production
            }
        )


# Global logging manager
logging_manager = LoggingManager()


def setup_logging(settings: Optional[Settings] = None):
    """Initialize the logging system"""
    logging_manager.setup_logging(settings)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance"""
    return logging.getLogger(name)


def log_performance(operation: str):
    """
    Decorator that logs and times an async operation.
    
    Args:
        operation: Name the call is recorded under in the metrics
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            start_time = time.perf_counter()
            success = True
            
            logger.debug(f"Starting {operation}", extra={'operation': operation})
            
            try:
                return await func(*args, **kwargs)
                
            except Exception as e:
                success = False
                logger.warning(
                    f"Operation {operation} failed: {e}",
                    extra={
                        'operation': operation,
                        'error_type': type(e).__name__
                    }
                )
                raise
                
            finally:
                duration = time.perf_counter() - start_time
                performance_metrics.record_operation(
                    operation=operation,
                    duration=duration,
                    success=success
                )
                logger.debug(
                    f"Completed {operation}",
                    extra={
                        'operation': operation,
                        'duration': duration,
                        'success': success
                    }
                )
        
        return wrapper
    
    return decorator


def get_performance_metrics(operation: Optional[str] = None) -> Dict[str, Any]:
    """Get performance metrics"""
    return performance_metrics.get_metrics(operation)


def reset_performance_metrics(operation: Optional[str] = None):
    """Reset performance metrics"""
    performance_metrics.reset(operation)
