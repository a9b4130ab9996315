"""
Transient notices returned to the presentation layer.

Every user action ends in an ActionResult. Rendering the notice (toast,
alert, status line) is the caller's business.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notice(BaseModel):
    """A short message for the user."""

    level: NoticeLevel
    message: str = Field(..., min_length=1, max_length=500)

    @classmethod
    def success(cls, message: str) -> "Notice":
        return cls(level=NoticeLevel.SUCCESS, message=message)

    @classmethod
    def warning(cls, message: str) -> "Notice":
        return cls(level=NoticeLevel.WARNING, message=message)

    @classmethod
    def error(cls, message: str) -> "Notice":
        return cls(level=NoticeLevel.ERROR, message=message)


class ActionResult(BaseModel):
    """
    Outcome of one user action.

    `data` carries whatever the caller needs to re-render (a refreshed list,
    a pending deletion); it is None when the action failed.
    """

    ok: bool
    notice: Optional[Notice] = None
    data: Any = None
    error_type: Optional[str] = None

    @classmethod
    def succeeded(cls, data: Any = None, message: Optional[str] = None) -> "ActionResult":
        return cls(ok=True, data=data, notice=Notice.success(message) if message else None)

    @classmethod
    def failed(cls, notice: Notice, error_type: Optional[str] = None) -> "ActionResult":
        return cls(ok=False, notice=notice, error_type=error_type)
