"""Data models for tenx."""

from tenx.models.context_models import ContextItem
from tenx.models.provider_models import ModelSpec
from tenx.models.step_models import (
    ModelResponse,
    Operation,
    Step,
    StepError,
    StepStatus,
    StepType,
    Usage,
)

__all__ = [
    "ContextItem",
    "ModelResponse",
    "ModelSpec",
    "Operation",
    "Step",
    "StepError",
    "StepStatus",
    "StepType",
    "Usage",
]
