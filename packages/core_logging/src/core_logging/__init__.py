from .logger import (
    get_logger,
    log_stage,
    record_error,
    request_scope,
)
from .error_codes import ErrorCode

__all__ = [
    "get_logger",
    "log_stage",
    "record_error",
    "request_scope",
    "ErrorCode",
]
