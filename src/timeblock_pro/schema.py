from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from timeblock_pro.utils.time import minutes_to_time, time_to_minutes

BUFFER_BLOCK_TYPE_ID = "buffer-time"


def new_id() -> str:
    return str(uuid4())


def _canonical_time(value: str) -> str:
    return minutes_to_time(time_to_minutes(value))


class BlockType(BaseModel):
    """A named, coloured category that time blocks and tasks belong to."""

    id: str = Field(default_factory=new_id)
    name: str
    color: str
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Block type name cannot be empty")
        return value


BUFFER_BLOCK_TYPE = BlockType(
    id=BUFFER_BLOCK_TYPE_ID,
    name="Buffer Time",
    color="#6B7280",
    created_at=datetime(1970, 1, 1),
)


class TimeBlock(BaseModel):
    """A weekly recurring slot; times are canonical 'HH:MM' strings."""

    id: str = Field(default_factory=new_id)
    block_type_id: str
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        return _canonical_time(value)

    @model_validator(mode="after")
    def _check_order(self) -> "TimeBlock":
        if self.end_minutes <= self.start_minutes:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end_time)

    @property
    def is_buffer(self) -> bool:
        return self.block_type_id == BUFFER_BLOCK_TYPE_ID


class Subtask(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    completed: bool = False
    created_at: datetime = Field(default_factory=datetime.now)


class Task(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: str | None = None
    deadline: datetime | None = None
    priority: bool = False
    # None means the task is universal and shows up during buffer time.
    block_type_id: str | None = None
    completed: bool = False
    archived: bool = False
    subtasks: list[Subtask] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None
    archived_at: datetime | None = None


class TimerSession(BaseModel):
    """A persisted record of one focus timer run."""

    id: str = Field(default_factory=new_id)
    block_type_id: str
    start_time: datetime = Field(default_factory=datetime.now)
    paused_time_ms: int = 0  # total time spent paused
    active_time_ms: int = 0  # total time spent counting down
    completed: bool = False
    ended_early: bool = False


class AppData(BaseModel):
    """The document persisted by the schedule store."""

    block_types: list[BlockType] = Field(default_factory=list)
    time_blocks: list[TimeBlock] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    timer_sessions: list[TimerSession] = Field(default_factory=list)


class ActiveBlockSnapshot(BaseModel):
    """The block containing 'now', joined with its type. Never persisted."""

    time_block: TimeBlock
    block_type: BlockType
    remaining_minutes: int
    remaining_seconds: int

    @property
    def id(self) -> str:
        return self.time_block.id

    @property
    def is_buffer(self) -> bool:
        return self.time_block.is_buffer


class ScheduleResult(BaseModel):
    """Outcome of a gated time-block write. A rejection is a value, not an error."""

    accepted: bool
    block: TimeBlock | None = None
    conflicts: list[TimeBlock] = Field(default_factory=list)
    reason: str | None = None


class ImportResult(BaseModel):
    success: bool
    message: str
    stats: dict[str, int] | None = None
