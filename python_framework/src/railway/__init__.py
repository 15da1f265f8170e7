"""
Railway-Oriented Programming (ROP) framework.

Explicit, composable error handling — operations return Result values
instead of raising, and failures short-circuit through the chain.

    from railway import Result, ErrorCode

    def require_port(port: int) -> Result[int]:
        if not 1 <= port <= 65535:
            return Result.failure(ErrorCode.VALIDATION_ERROR, f"Invalid port: {port}")
        return Result.success(port)

    result = require_port(443).map(lambda port: f"example.com:{port}")
"""

from railway.assertions import ResultAssertions
from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result, Success

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ResultAssertions",
]

__version__ = "1.1.0"
