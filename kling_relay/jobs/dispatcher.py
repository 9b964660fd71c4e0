"""Job dispatcher interface."""

from abc import ABC, abstractmethod


class JobDispatcher(ABC):
    """Abstract interface for handing a record off to a lifecycle run."""

    @abstractmethod
    async def submit(self, record_id: str) -> bool:
        """Start a lifecycle for the record. Returns False if one is already running."""
        ...

    @abstractmethod
    def is_active(self, record_id: str) -> bool:
        """Whether a lifecycle for this record is in flight."""
        ...

    @abstractmethod
    def active_count(self) -> int:
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher, abandoning in-flight runs."""
        ...
