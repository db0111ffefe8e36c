from pydantic import BaseModel, Field, TypeAdapter
from typing import Annotated, List, Literal, Optional, Tuple, Union

class SyncEvent(BaseModel):
    type: Literal["sync"] = "sync"
    id: int
    time: float
    latencies: Tuple[float, float, float]

class MediaStartEvent(BaseModel):
    type: Literal["media_start"] = "media_start"
    id: int
    filename: str

class MediaStopEvent(BaseModel):
    type: Literal["media_stop"] = "media_stop"
    id: int

Event = Annotated[
    Union[SyncEvent, MediaStartEvent, MediaStopEvent],
    Field(discriminator="type"),
]
EVENT_ADAPTER: TypeAdapter = TypeAdapter(Event)

class SessionState(BaseModel):
    id: int = 0
    filename: Optional[str] = None
    time: float = 0.0
    start_times: List[float] = Field(default_factory=list)  # Oldest first

class SessionSnapshot(BaseModel):
    id: int
    filename: Optional[str] = None
    time: float
    average_start: float

class StatusResponse(BaseModel):
    id: int
    filename: Optional[str] = None
    start_time: float

class LiveUpdate(BaseModel):
    filename: Optional[str] = None
    time: float
