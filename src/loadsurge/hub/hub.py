"""Real-time broadcast hub.

Fans events out to every connected observer without ever waiting on one:

    LoadGenerator -> BroadcastHub.broadcast -> Observer buffers -> transports

Each observer owns a bounded ``asyncio.Queue`` of encoded messages.  A full
queue means a slow observer; the newest message is dropped for that
observer alone and counted.  The observer map is the only state shared
between callers, guarded by one lock held just long enough to copy it.

Example:
    hub = BroadcastHub()
    hub.start()
    observer = hub.register()
    hub.broadcast(SimulationStarted.from_run(run))
    message = await observer.receive()
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import TYPE_CHECKING
from uuid import uuid4

from loadsurge._internal.errors import LifecycleError, ObserverDeliveryError
from loadsurge._internal.logging import get_logger
from loadsurge.hub.events import (
    Command,
    ConnectionEstablished,
    ErrorEvent,
    Pong,
    StatusUpdate,
    SubscriptionAck,
    parse_command,
)

if TYPE_CHECKING:
    from loadsurge.hub.events import Event

logger = get_logger("hub")

DEFAULT_BUFFER_SIZE = 256


class Observer:
    """One live subscriber and its outbound buffer.

    Attributes:
        observer_id: Unique identifier, also sent in the welcome message.
        subscriptions: Simulation ids this observer narrowed delivery to.
            Empty means every event.
        dropped: Messages discarded because the buffer was full.
        connected_at: Wall-clock registration time (Unix seconds).
    """

    def __init__(self, observer_id: str, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        self.observer_id = observer_id
        self.subscriptions: set[int] = set()
        self.dropped = 0
        self.connected_at = time.time()
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=buffer_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Return the number of messages waiting in the buffer."""
        return self._queue.qsize()

    def wants(self, event: Event) -> bool:
        """Return True if *event* passes this observer's subscriptions.

        Events not tied to a simulation always pass.
        """
        simulation_id = event.simulation_id
        if simulation_id is None or not self.subscriptions:
            return True
        return simulation_id in self.subscriptions

    def offer(self, message: str) -> None:
        """Queue an encoded message without waiting.

        Raises:
            ObserverDeliveryError: If the observer is closed or its buffer
                is full.  A full buffer also increments ``dropped``.
        """
        if self._closed:
            msg = f"observer {self.observer_id} is closed"
            raise ObserverDeliveryError(msg)
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            msg = f"observer {self.observer_id} buffer full ({self._queue.maxsize})"
            raise ObserverDeliveryError(msg) from None

    async def receive(self) -> str | None:
        """Wait for the next message; None marks the end of the stream."""
        return await self._queue.get()

    def close(self) -> None:
        """Mark the observer closed and wake its reader with the end marker."""
        if self._closed:
            return
        self._closed = True
        if self._queue.full():
            # The end marker must get through; an outgoing message may not
            self._queue.get_nowait()
        self._queue.put_nowait(None)


class BroadcastHub:
    """Process-wide fan-out point for simulation events.

    Lifecycle: ``start()`` -> register/broadcast -> ``shutdown()``.  A shut
    down hub refuses new observers and cannot be restarted.  The hub holds
    no simulation state of its own.

    Attributes:
        buffer_size: Per-observer outbound buffer size.
    """

    def __init__(self, *, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        """Initialize a stopped hub.

        Args:
            buffer_size: Per-observer outbound buffer size.

        Raises:
            ValueError: If *buffer_size* is not positive.
        """
        if buffer_size < 1:
            msg = f"buffer_size must be positive, got {buffer_size}"
            raise ValueError(msg)
        self.buffer_size = buffer_size
        self._observers: dict[str, Observer] = {}
        self._lock = threading.Lock()
        self._running = False
        self._shut_down = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def observers(self) -> list[Observer]:
        """Return a copy of the currently registered observers."""
        with self._lock:
            return list(self._observers.values())

    def start(self) -> None:
        """Start accepting observers.

        Raises:
            LifecycleError: If the hub was already shut down.
        """
        if self._shut_down:
            raise LifecycleError("broadcast hub was shut down and cannot restart")
        if self._running:
            return
        self._running = True
        logger.info("Broadcast hub started")

    def shutdown(self) -> None:
        """Close every observer and refuse further registrations."""
        with self._lock:
            observers = list(self._observers.values())
            self._observers.clear()
            self._running = False
            self._shut_down = True

        for observer in observers:
            observer.close()
        logger.info("Broadcast hub shut down, closed %d observers", len(observers))

    def register(self, observer_id: str | None = None) -> Observer:
        """Register a new observer and queue its welcome message.

        Args:
            observer_id: Identifier to use.  A random one is generated when
                omitted.

        Returns:
            The registered observer.

        Raises:
            LifecycleError: If the hub is not running or the id is taken.
        """
        observer = Observer(observer_id or str(uuid4()), self.buffer_size)
        with self._lock:
            if not self._running:
                raise LifecycleError("broadcast hub is not running")
            if observer.observer_id in self._observers:
                msg = f"observer {observer.observer_id} is already registered"
                raise LifecycleError(msg)
            self._observers[observer.observer_id] = observer
            count = len(self._observers)

        logger.info("Observer %s connected (%d total)", observer.observer_id, count)
        self.send_to(observer, ConnectionEstablished(client_id=observer.observer_id))
        return observer

    def unregister(self, observer_id: str) -> bool:
        """Remove an observer and close it.

        Safe to call repeatedly; only the first call has an effect.

        Returns:
            True if the observer was registered.
        """
        with self._lock:
            observer = self._observers.pop(observer_id, None)
            count = len(self._observers)

        if observer is None:
            return False
        observer.close()
        logger.info("Observer %s disconnected (%d total)", observer_id, count)
        return True

    def broadcast(self, event: Event) -> int:
        """Deliver *event* to every interested observer.

        Never waits: a full observer buffer drops the message for that
        observer only.

        Returns:
            Number of observers the event was queued for.
        """
        observers = self.observers()
        if not observers:
            return 0

        message = event.envelope().to_wire()
        delivered = 0
        for observer in observers:
            if not observer.wants(event):
                continue
            if self._offer(observer, message, event.event_type):
                delivered += 1
        return delivered

    def send_to(self, observer: Observer, event: Event) -> bool:
        """Deliver *event* to a single observer, ignoring subscriptions.

        Returns:
            True if the event was queued.
        """
        return self._offer(observer, event.envelope().to_wire(), event.event_type)

    def handle_message(self, observer: Observer, raw: str) -> None:
        """Decode and handle one inbound text frame.

        Malformed frames are logged and ignored.
        """
        try:
            command = parse_command(raw)
        except ValueError as exc:
            logger.warning("Ignoring malformed message from %s: %s", observer.observer_id, exc)
            return
        self.handle_command(observer, command)

    def handle_command(self, observer: Observer, command: Command) -> None:
        """Answer one inbound command on *observer*'s own buffer."""
        if command.type == Command.PING:
            self.send_to(observer, Pong())
        elif command.type == Command.GET_STATUS:
            self.send_to(observer, StatusUpdate(connected_observers=self.observer_count))
        elif command.type in (Command.SUBSCRIBE, Command.UNSUBSCRIBE):
            self._handle_subscription(observer, command)
        else:
            logger.warning(
                "Unknown command %r from observer %s", command.type, observer.observer_id
            )
            self.send_to(
                observer,
                ErrorEvent(
                    error_type="unknown_command",
                    message=f"Unknown command type: {command.type}",
                    details={"type": command.type},
                ),
            )

    def _handle_subscription(self, observer: Observer, command: Command) -> None:
        try:
            simulation_id = command.simulation_id
        except ValueError as exc:
            self.send_to(
                observer,
                ErrorEvent(error_type="invalid_command", message=str(exc), details=command.data),
            )
            return

        if command.type == Command.SUBSCRIBE:
            if simulation_id is None:
                self.send_to(
                    observer,
                    ErrorEvent(
                        error_type="invalid_command",
                        message="subscribe_simulation requires a simulation_id",
                    ),
                )
                return
            observer.subscriptions.add(simulation_id)
        elif simulation_id is None:
            observer.subscriptions.clear()
        else:
            observer.subscriptions.discard(simulation_id)

        self.send_to(observer, SubscriptionAck(action=command.type, subscribed_to=simulation_id))

    def _offer(self, observer: Observer, message: str, event_type: str) -> bool:
        try:
            observer.offer(message)
        except ObserverDeliveryError as exc:
            logger.warning("Dropped %s event: %s", event_type, exc)
            return False
        return True
