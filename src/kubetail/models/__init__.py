"""
Pydantic data models package.

Contains the decoded log record consumed by the delivery pipeline.
"""

from .log_record import LogRecord

__all__ = ["LogRecord"]
