"""fal.ai client for the virtual try-on model."""

import asyncio
import logging
from typing import Awaitable, Callable

import fal_client
import httpx

from ..config import FalConfig

logger = logging.getLogger(__name__)

LogCallback = Callable[[list[str]], Awaitable[None]]


class InferenceError(RuntimeError):
    """The model request failed as a whole (transport, status or rejection)."""


class FalTryOnClient:
    """Runs a garment try-on model through fal.ai's queue.

    One call submits a job, follows its status events until it completes and
    then fetches the result. Model log lines seen along the way are handed to
    the caller as they arrive.
    """

    def __init__(
        self,
        config: FalConfig,
        client: fal_client.AsyncClient | None = None,
    ):
        self.config = config
        self._client = client

    @property
    def client(self) -> fal_client.AsyncClient:
        """Get or create the fal client."""
        if self._client is None:
            self._client = fal_client.AsyncClient(
                key=self.config.key,
                default_timeout=self.config.request_timeout,
            )
        return self._client

    @property
    def is_configured(self) -> bool:
        return bool(self.config.key)

    async def try_on(
        self,
        human_image_url: str,
        garment_image_url: str,
        on_logs: LogCallback | None = None,
    ) -> str | None:
        """Dress the person in one garment.

        Args:
            human_image_url: URL of the person (or the previous composite)
            garment_image_url: URL of the garment to put on
            on_logs: Awaited with each batch of new model log lines

        Returns:
            URL of the composite image, or None if the model returned none

        Raises:
            InferenceError: if the job could not be submitted, failed or the
                result could not be fetched
        """
        if not self.is_configured:
            raise InferenceError("FAL key is not configured")

        try:
            handle = await self.client.submit(
                self.config.model_id,
                arguments={
                    "human_image_url": human_image_url,
                    "garment_image_url": garment_image_url,
                },
            )
        except (fal_client.FalClientError, httpx.HTTPError) as e:
            raise InferenceError(f"fal rejected request: {e}") from e

        logger.info("Queued fal request %s", handle.request_id)

        try:
            await self._wait_for_completion(handle, on_logs)
            result = await handle.get(interval=self.config.poll_interval)
        except asyncio.CancelledError:
            await self._cancel(handle)
            raise
        except (fal_client.FalClientError, httpx.HTTPError) as e:
            raise InferenceError(f"fal request {handle.request_id} failed: {e}") from e

        image = result.get("image") or {}
        return image.get("url") or None

    async def _wait_for_completion(
        self,
        handle: fal_client.AsyncRequestHandle,
        on_logs: LogCallback | None,
    ) -> None:
        """Follow status events until the job completes, relaying new log lines.

        fal returns the full log list on every poll, so only the tail past
        what was already relayed is passed on.
        """
        seen = 0

        async for status in handle.iter_events(
            with_logs=True,
            interval=self.config.poll_interval,
        ):
            if isinstance(status, (fal_client.InProgress, fal_client.Completed)):
                logs = status.logs or []
                new_lines = [entry.get("message", "") for entry in logs[seen:]]
                seen = max(seen, len(logs))
                new_lines = [line for line in new_lines if line]
                if new_lines and on_logs is not None:
                    await on_logs(new_lines)

            if isinstance(status, fal_client.Completed):
                if status.error:
                    raise InferenceError(f"fal job failed: {status.error}")
                return

    async def _cancel(self, handle: fal_client.AsyncRequestHandle) -> None:
        """Ask fal to drop a job nobody is waiting for any more."""
        try:
            await handle.cancel()
            logger.info("Cancelled fal request %s", handle.request_id)
        except (fal_client.FalClientError, httpx.HTTPError) as e:
            logger.warning("Could not cancel fal request %s: %s", handle.request_id, e)

    async def close(self):
        """Drop the fal client; a new one is created on next use."""
        self._client = None
