"""Progress events streamed to the client during a try-on.

Every event serializes to one flat JSON object. The ``type`` field tells the
variants apart and the remaining fields use camelCase names on the wire, so a
browser client can read them without any mapping.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class _Event(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    message: str


class _StepEvent(_Event):
    step_index: int = Field(ge=0)
    total_steps: int = Field(ge=1)
    current_category: str


class Progress(_StepEvent):
    """A garment is about to be sent to the model."""
    type: Literal["progress"] = "progress"


class ModelProgress(_StepEvent):
    """Log lines relayed from the model while it works."""
    type: Literal["modelProgress"] = "modelProgress"


class ItemComplete(_StepEvent):
    """A garment was applied; ``intermediate_image`` is the new composite."""
    type: Literal["itemComplete"] = "itemComplete"
    intermediate_image: str


class Complete(_Event):
    """Terminal event for a run that went through every garment."""
    type: Literal["complete"] = "complete"
    result_image: str


class Error(_Event):
    """A failed step, or the fatal failure that ends the run.

    Step errors carry the step fields; a fatal error without them means the
    whole run stopped.
    """
    type: Literal["error"] = "error"
    fatal: bool = False
    step_index: int | None = None
    total_steps: int | None = None
    current_category: str | None = None


ProgressEvent = Annotated[
    Union[Progress, ModelProgress, ItemComplete, Complete, Error],
    Field(discriminator="type"),
]

progress_event_adapter: TypeAdapter[ProgressEvent] = TypeAdapter(ProgressEvent)


def is_terminal(event: BaseModel) -> bool:
    """Whether the stream ends after this event."""
    return isinstance(event, Complete) or (isinstance(event, Error) and event.fatal)
