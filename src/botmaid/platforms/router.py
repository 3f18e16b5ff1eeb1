"""Message router: multiplexes platform adapters into one event stream."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Coroutine

from botmaid.platforms.models import Event, Message, MessageEvent
from botmaid.platforms.protocol import PlatformAdapter

logger = logging.getLogger(__name__)


class MessageHandler(ABC):
    """Application logic invoked by the router.

    Subclasses implement :meth:`handle_message`. Replies go through
    ``message.reply(...)`` or ``message.chat.send(...)``, which route back to
    the adapter that received the message.
    """

    async def handle_event(self, event: Event) -> None:
        """Dispatch an event. Non-message events are ignored by default."""
        if isinstance(event, MessageEvent):
            await self.handle_message(event.message)

    @abstractmethod
    async def handle_message(self, message: Message) -> None:
        """Handle one inbound message."""
        ...

    async def run_jobs(self, adapters: Sequence[PlatformAdapter]) -> None:
        """Background work with access to every adapter (scheduled jobs, ...).

        Default implementation does nothing.
        """
        pass


class MessageRouter:
    """Routes events from platform adapters to a message handler.

    The router:
    1. Owns a fixed set of adapters for the lifetime of the process
    2. Runs each adapter's ingestion loop
    3. Drains each adapter's event queue, spawning one handling task per event
    4. Runs the handler's background jobs with access to every adapter

    There is no cap on concurrently running handlers. Events of one adapter
    are pulled in arrival order, but handled concurrently.
    """

    def __init__(self, adapters: Sequence[PlatformAdapter], handler: MessageHandler) -> None:
        """Initialize the message router.

        Args:
            adapters: Platform adapters, fixed for the router's lifetime
            handler: Application logic receiving every event
        """
        self._adapters: tuple[PlatformAdapter, ...] = tuple(adapters)
        self._handler = handler
        self._active: list[PlatformAdapter] = []
        self._loops: list[asyncio.Task] = []
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    @property
    def adapters(self) -> tuple[PlatformAdapter, ...]:
        return self._adapters

    @property
    def active_adapters(self) -> list[PlatformAdapter]:
        """Adapters that started successfully."""
        return list(self._active)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending_handlers(self) -> int:
        """Number of handling tasks still in flight."""
        return len(self._tasks)

    async def start(self) -> None:
        """Start every adapter and the drain loops.

        An adapter whose start fails is logged and left out; the others keep
        running.
        """
        if self._running:
            logger.warning("Router is already running")
            return

        self._running = True
        logger.info("Starting message router")

        for adapter in self._adapters:
            try:
                await adapter.start()
            except Exception as e:
                logger.error(f"Failed to start adapter for {adapter.name}: {e}")
                continue

            self._active.append(adapter)
            self._loops.append(
                asyncio.create_task(self._run_adapter(adapter), name=f"run-{adapter.name}")
            )
            self._loops.append(
                asyncio.create_task(self._drain_adapter(adapter), name=f"drain-{adapter.name}")
            )
            logger.info(f"Started adapter for {adapter.name}")

        self._loops.append(asyncio.create_task(self._run_jobs(), name="jobs"))

        logger.info(f"Message router started with {len(self._active)} adapters")

    async def wait(self) -> None:
        """Wait until every ingestion loop, drain loop and the job task finished."""
        if self._loops:
            await asyncio.gather(*self._loops, return_exceptions=True)

    async def run(self) -> None:
        """Start the router and run until every loop finished."""
        await self.start()
        await self.wait()

    async def stop(self) -> None:
        """Cancel every task and close the adapters (process teardown)."""
        if not self._running:
            logger.warning("Router is not running")
            return

        logger.info("Stopping message router")
        self._running = False

        tasks = [*self._loops, *self._tasks]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._loops.clear()

        for adapter in self._adapters:
            try:
                await adapter.cancel_tasks()
                await adapter.close()
            except Exception as e:
                logger.error(f"Failed to close adapter for {adapter.name}: {e}")

        logger.info("Message router stopped")

    async def _run_adapter(self, adapter: PlatformAdapter) -> None:
        try:
            await adapter.run()
            logger.info(f"Ingestion loop of {adapter.name} finished")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Ingestion loop of {adapter.name} crashed: {e}", exc_info=True)

    async def _drain_adapter(self, adapter: PlatformAdapter) -> None:
        """Pull events from one adapter until its queue is closed."""
        logger.info(f"Listening for events from {adapter.name}")

        while True:
            event = await adapter.next_event()
            if event is None:
                break
            self._spawn(self._handle_event(adapter, event), name=f"handle-{adapter.name}")

        logger.info(f"Event stream of {adapter.name} ended")

    async def _handle_event(self, adapter: PlatformAdapter, event: Event) -> None:
        if isinstance(event, MessageEvent):
            logger.info(f"[{adapter.name}] received message: {event.message}")
        else:
            logger.debug(f"[{adapter.name}] received event: {event}")

        try:
            await self._handler.handle_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[{adapter.name}] handler failed: {e}", exc_info=True)

    async def _run_jobs(self) -> None:
        try:
            await self._handler.run_jobs(self._active)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Background jobs failed: {e}", exc_info=True)

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
