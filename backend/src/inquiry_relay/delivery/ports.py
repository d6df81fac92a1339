"""
RelayConnection - Port interface for the outbound relay

The pool and dispatcher depend only on this interface, not on aiosmtplib.
Tests plug in fake connections through the same seam.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from .message import InquiryMessage


class RelayConnection(ABC):
    """
    One open session with the relay.

    Implementations are created already connected and authenticated by a
    ConnectionFactory. Any exception raised by send() or noop() leaves the
    connection unusable; the pool discards it.
    """

    @abstractmethod
    async def send(self, message: InquiryMessage) -> str:
        """
        Hand one message to the relay.

        Returns:
            The relay's final reply text (e.g. "2.0.0 Ok: queued as 4Xyz")
        """
        pass

    @abstractmethod
    async def noop(self) -> None:
        """Round-trip a no-op command to confirm the session is alive."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the session; never raises."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass


ConnectionFactory = Callable[[], Awaitable[RelayConnection]]
