"""Outcome of a single pipeline run."""

from typing import Literal

from pydantic import BaseModel, Field


class PipelineResult(BaseModel):
    """What the driver reports back to its caller once a run ends.

    Never sent to the client; the event stream is the client's view.
    """

    status: Literal["completed", "failed", "aborted"]
    result_image_url: str
    applied: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)

    @property
    def all_applied(self) -> bool:
        return self.status == "completed" and not self.failed
