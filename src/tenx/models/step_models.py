"""Step-related models: one conversational turn and its outcome."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from tenx.exceptions import TenxError
from tenx.patch import Patch


class StepType(str, Enum):
    """Why a step was started."""

    CODE = "code"
    FIX = "fix"
    AUTO = "auto"
    ERROR = "error"


class StepStatus(str, Enum):
    """Lifecycle of a step: pending until it is applied or fails."""

    PENDING = "pending"
    APPLIED = "applied"
    FAILED = "failed"


class Usage(BaseModel):
    """Token accounting reported by the model provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    def values(self) -> dict[str, int]:
        return self.model_dump()

    def total(self) -> int:
        return sum(self.values().values())


class Operation(BaseModel):
    """A non-patch action requested by the model."""

    kind: Literal["edit"] = "edit"
    path: str


class ModelResponse(BaseModel):
    """Everything extracted from one model reply."""

    patch: Patch | None = None
    operations: list[Operation] = Field(default_factory=list)
    usage: Usage | None = None
    comment: str | None = None
    response_text: str | None = None


class StepError(BaseModel):
    """A persisted record of the error that ended a step."""

    kind: str
    user: str
    model: str | None = None

    @classmethod
    def from_exception(cls, exc: Exception) -> "StepError":
        if isinstance(exc, TenxError):
            return cls(kind=type(exc).__name__, user=exc.user, model=exc.model)
        return cls(kind=type(exc).__name__, user=str(exc))

    def model_message(self) -> str:
        return self.model or self.user


class Step(BaseModel):
    """One turn: a prompt, then either a model response or an error."""

    model_config = ConfigDict(frozen=False, protected_namespaces=())

    prompt: str
    step_type: StepType = StepType.CODE
    model_response: ModelResponse | None = None
    err: StepError | None = None

    @property
    def status(self) -> StepStatus:
        if self.err is not None:
            return StepStatus.FAILED
        if self.model_response is not None:
            return StepStatus.APPLIED
        return StepStatus.PENDING

    @property
    def patch(self) -> Patch | None:
        return self.model_response.patch if self.model_response else None

    def is_pending(self) -> bool:
        return self.status is StepStatus.PENDING
