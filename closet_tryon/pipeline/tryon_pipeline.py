"""Sequential virtual try-on pipeline with live progress events."""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Sequence

from pydantic import BaseModel

from ..config import Settings
from ..models import (
    Complete,
    Error,
    GarmentRef,
    ItemComplete,
    ModelProgress,
    PipelineResult,
    Progress,
)
from ..services import FalTryOnClient
from .event_stream import EventStream, StreamClosedError

logger = logging.getLogger(__name__)

EventSink = Callable[[BaseModel], Awaitable[None]]

FATAL_MESSAGE = "Failed to generate try-on image"
COMPLETE_MESSAGE = "Virtual try-on complete!"


class TryOnPipeline:
    """Applies garments one after another onto a base photo.

    Flow, for each selected garment in order:
    1. Announce the garment (``progress``)
    2. Send the current image and the garment to the model, relaying its
       log lines (``modelProgress``)
    3. Keep the composite as the next base image (``itemComplete``), or
       report the garment as failed (``error``) and keep the previous image
    4. After the last garment, report the final image (``complete``)

    A model request that fails outright ends the run with a fatal ``error``
    and no ``complete``.
    """

    def __init__(self, config: Settings, fal: FalTryOnClient | None = None):
        self.config = config
        self.fal = fal or FalTryOnClient(config.fal)

    async def run(
        self,
        base_image_url: str,
        garments: Sequence[GarmentRef],
        emit: EventSink,
    ) -> PipelineResult:
        """Run the try-on, writing every event to ``emit``.

        Args:
            base_image_url: Photo of the person
            garments: Garments in the order they should be applied
            emit: Awaited once per event; raising StreamClosedError stops the run

        Returns:
            PipelineResult describing how the run ended
        """
        total = len(garments)
        current_image = base_image_url
        applied: list[str] = []
        failed: list[str] = []
        fail_fast = self.config.pipeline.failure_policy == "fail_fast"

        def result(status: str) -> PipelineResult:
            return PipelineResult(
                status=status,
                result_image_url=current_image,
                applied=applied,
                failed=failed,
            )

        logger.info("Starting try-on with %d garment(s)", total)

        try:
            for index, garment in enumerate(garments):
                if not garment.is_selected:
                    continue

                category = garment.category
                step = {
                    "step_index": index,
                    "total_steps": total,
                    "current_category": category,
                }
                await emit(Progress(message=f"Processing {category}...", **step))

                async def relay(lines: list[str]) -> None:
                    await emit(ModelProgress(message=", ".join(lines), **step))

                try:
                    image_url = await self._apply(current_image, garment, relay)
                except StreamClosedError:
                    raise
                except Exception:
                    logger.exception("Try-on request for %s failed", category)
                    await emit(Error(message=FATAL_MESSAGE, fatal=True))
                    return result("failed")

                if image_url:
                    current_image = image_url
                    applied.append(category)
                    logger.info("Applied %s (%d/%d)", category, index + 1, total)
                    await emit(ItemComplete(
                        message=f"{category} applied successfully!",
                        step_index=index + 1,
                        total_steps=total,
                        current_category=category,
                        intermediate_image=current_image,
                    ))
                    continue

                failed.append(category)
                logger.warning("No image returned for %s", category)
                await emit(Error(
                    message=f"Failed to apply {category}",
                    fatal=fail_fast,
                    **step,
                ))
                if fail_fast:
                    return result("failed")

            await emit(Complete(message=COMPLETE_MESSAGE, result_image=current_image))
            return result("completed")

        except StreamClosedError:
            logger.info("Client went away; stopping try-on after %d garment(s)", len(applied))
            return result("aborted")

    async def _apply(
        self,
        current_image: str,
        garment: GarmentRef,
        relay: Callable[[list[str]], Awaitable[None]],
    ) -> str | None:
        """One model call, bounded by the step timeout.

        The model runs in its own task and only its work counts against the
        timeout. Log batches it reports are queued and relayed from here, so
        a slow reader holds up the relay but not the model.

        A timed-out step counts as a garment that produced no image.
        """
        batches: asyncio.Queue = asyncio.Queue()

        async def collect(lines: list[str]) -> None:
            batches.put_nowait(lines)

        call = asyncio.ensure_future(asyncio.wait_for(
            self.fal.try_on(current_image, garment.image_url, on_logs=collect),
            timeout=self.config.pipeline.step_timeout,
        ))
        next_batch = None
        try:
            while True:
                next_batch = asyncio.ensure_future(batches.get())
                await asyncio.wait({call, next_batch}, return_when=asyncio.FIRST_COMPLETED)
                if not next_batch.done():
                    next_batch.cancel()
                    break
                await relay(next_batch.result())

            while not batches.empty():
                await relay(batches.get_nowait())
            return call.result()
        except asyncio.TimeoutError:
            logger.warning(
                "%s timed out after %ss",
                garment.category,
                self.config.pipeline.step_timeout,
            )
            return None
        finally:
            if next_batch is not None and not next_batch.done():
                next_batch.cancel()
            if not call.done():
                call.cancel()
                await asyncio.gather(call, return_exceptions=True)

    async def stream(
        self,
        base_image_url: str,
        garments: Sequence[GarmentRef],
    ) -> AsyncIterator[str]:
        """Run the try-on in a task and yield its events as JSON lines.

        Closing the iterator early (client disconnect) cancels the run.
        """
        events = EventStream(self.config.pipeline.stream_buffer)

        async def produce() -> PipelineResult:
            try:
                return await self.run(base_image_url, garments, events.emit)
            finally:
                if not events.closed:
                    await events.close()

        task = asyncio.create_task(produce())
        finished = False
        try:
            async for line in events.lines():
                yield line
            finished = True
        finally:
            if finished:
                outcome = await task
                if outcome.all_applied:
                    logger.info("Try-on completed: %d garment(s) applied", len(outcome.applied))
                else:
                    logger.warning(
                        "Try-on %s: %d applied, failed: %s",
                        outcome.status,
                        len(outcome.applied),
                        ", ".join(outcome.failed) or "none",
                    )
            else:
                events.abort()
                task.cancel()
