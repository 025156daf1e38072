"""Per-invocation execution context handed to every tool."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import OperationAborted

logger = logging.getLogger(__name__)


class ProgressEvent(BaseModel):
    progress: float
    total: Optional[float] = None
    message: Optional[str] = None


class CallerIdentity(BaseModel):
    """The authenticated requester, when the transport provides one."""
    user_uid: str
    email: Optional[str] = None
    access_token: Optional[str] = None


ProgressCallback = Callable[[ProgressEvent], Awaitable[None]]


async def _drop_progress(event: ProgressEvent) -> None:
    return None


class ExecutionContext(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    progress_callback: ProgressCallback = _drop_progress
    cancel_event: asyncio.Event = Field(default_factory=asyncio.Event)
    caller: Optional[CallerIdentity] = None
    closed: bool = False

    async def report(self, progress: float, total: Optional[float] = 1, message: Optional[str] = None) -> None:
        """Forward a progress event, unless the tool has already returned."""
        if self.closed:
            logger.debug("Dropping progress after completion: %s", message)
            return
        await self.progress_callback(ProgressEvent(progress=progress, total=total, message=message))

    def raise_if_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise OperationAborted()

    def close(self) -> None:
        self.closed = True
