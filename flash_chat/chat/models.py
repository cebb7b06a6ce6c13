"""Chat data models: message roles, turn phases, messages and the session."""
import time
import uuid
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Phase(str, Enum):
    IDLE = "idle"
    THINKING = "thinking"      # request sent, nothing streamed yet (or between broadcasts)
    STREAMING = "streaming"    # chunks arriving


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role
    text: str
    timestamp: float = Field(default_factory=time.time)


@dataclass(frozen=True)
class Session:
    session_id: str
    channel_id: str
