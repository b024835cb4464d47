"""Shared lifecycle state of the supervisor."""

from typing import final

import anyio

from ._models import SupervisorState


@final
class ClusterState:
    """Running/shutting-down flag shared by the supervisor components.

    The transition to SHUTTING_DOWN happens once and is permanent. It turns
    off automatic respawning and wakes every task waiting for shutdown.
    """

    __slots__ = ("_event", "_state")

    def __init__(self) -> None:
        self._state = SupervisorState.RUNNING
        self._event: anyio.Event | None = None

    @property
    def state(self) -> SupervisorState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def auto_respawn(self) -> bool:
        """Return whether dead or replaced workers get a successor."""
        return self._state == SupervisorState.RUNNING

    @property
    def shutting_down(self) -> bool:
        """Return whether shutdown has begun."""
        return self._state == SupervisorState.SHUTTING_DOWN

    def begin_shutdown(self) -> bool:
        """Move to SHUTTING_DOWN.

        Returns:
            True if this call made the transition, False if already shutting down.
        """
        if self._state == SupervisorState.SHUTTING_DOWN:
            return False

        self._state = SupervisorState.SHUTTING_DOWN
        if self._event is not None:
            self._event.set()
        return True

    async def wait(self) -> None:
        """Block until shutdown begins."""
        if self.shutting_down:
            return
        if self._event is None:
            self._event = anyio.Event()
        await self._event.wait()

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds``, returning early if shutdown begins."""
        with anyio.move_on_after(seconds):
            await self.wait()
