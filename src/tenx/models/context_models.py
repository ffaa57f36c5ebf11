"""Models for rendered context handed to the model."""

from pydantic import BaseModel


class ContextItem(BaseModel):
    """A single rendered piece of context."""

    ty: str  # e.g. "file" or "text"
    name: str
    body: str
