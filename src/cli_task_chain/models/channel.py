"""Result model returned by terminal channel operations."""

from typing import Optional

from pydantic import BaseModel, Field


class ChannelResult(BaseModel):
    """Outcome of a single channel operation (send, read or spawn)."""

    ok: bool = Field(..., description="Whether the operation succeeded")
    text: str = Field("", description="Captured output for read operations")
    session_id: Optional[str] = Field(None, description="Session created by spawn")
    error: Optional[str] = Field(None, description="Failure detail when ok is False")

    @classmethod
    def success(cls, text: str = "", session_id: Optional[str] = None) -> "ChannelResult":
        return cls(ok=True, text=text, session_id=session_id)

    @classmethod
    def failure(cls, error: str) -> "ChannelResult":
        return cls(ok=False, error=error)
