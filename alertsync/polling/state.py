"""Long-poll connection state."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ConnectionStatus(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"
    ERROR = "error"


class ConnectionState(BaseModel):
    """One of Idle, Polling, Reconnecting(attempt), Stopped, Error(message)."""

    model_config = ConfigDict(frozen=True)

    status: ConnectionStatus
    attempt: Optional[int] = None
    message: Optional[str] = None

    @classmethod
    def idle(cls) -> "ConnectionState":
        return cls(status=ConnectionStatus.IDLE)

    @classmethod
    def polling(cls) -> "ConnectionState":
        return cls(status=ConnectionStatus.POLLING)

    @classmethod
    def reconnecting(cls, attempt: int) -> "ConnectionState":
        return cls(status=ConnectionStatus.RECONNECTING, attempt=attempt)

    @classmethod
    def stopped(cls) -> "ConnectionState":
        return cls(status=ConnectionStatus.STOPPED)

    @classmethod
    def error(cls, message: str) -> "ConnectionState":
        return cls(status=ConnectionStatus.ERROR, message=message)

    def __str__(self) -> str:
        if self.status == ConnectionStatus.RECONNECTING:
            return f"reconnecting(attempt={self.attempt})"
        if self.status == ConnectionStatus.ERROR:
            return f"error({self.message})"
        return self.status.value
