from enum import Enum

class ErrorCode(str, Enum):
    """
    Canonical codes for conditions the estimation path logs.
    """
    not_estimable   = "not_estimable"
    decode_failed   = "decode_failed"
    invalid_config  = "invalid_config"

__all__ = ["ErrorCode"]
