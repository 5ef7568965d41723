"""Per-request deadline and client-disconnect cancellation."""
import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from starlette.requests import Request
from starlette.responses import Response

T = TypeVar("T")


class ClientDisconnectedError(Exception):
    """Raised when the client goes away before the response is ready."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Client disconnected while handling {path}")


async def _wait_for_disconnect(request: Request) -> None:
    """Block until the ASGI server reports that the client disconnected."""
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def _release_unsent(result: object) -> None:
    """Run the cleanup task of a response that will never be sent."""
    if isinstance(result, Response) and result.background is not None:
        await result.background()


async def run_for_request(request: Request, work: Awaitable[T], timeout: float) -> T:
    """
    Run `work` bound to the lifetime of `request`.

    The work is cancelled when the deadline passes (TimeoutError is raised) or
    when the client disconnects first (ClientDisconnectedError is raised).

    Args:
        request: The inbound request whose lifetime bounds the work.
        work: Coroutine producing the response (upstream call and transforms).
        timeout: Deadline in seconds.

    Returns:
        The result of `work`.
    """
    task = asyncio.ensure_future(work)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        async with asyncio.timeout(timeout):
            await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        # The work may have finished just as the deadline fired; its response
        # still holds an open upstream stream
        if task.done() and not task.cancelled() and task.exception() is None:
            await _release_unsent(task.result())
        raise
    finally:
        watcher.cancel()
        if not task.done():
            task.cancel()
    if not task.done():
        raise ClientDisconnectedError(request.url.path)
    return task.result()
