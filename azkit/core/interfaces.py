from abc import ABC, abstractmethod
from typing import Optional
from .models import ActiveLease


class ILeaseManager(ABC):
    """Service-side lease state for containers and blobs, keyed by resource path."""

    @abstractmethod
    async def acquire(
        self, path: str, duration: int, proposed_lease_id: Optional[str] = None
    ) -> ActiveLease:
        pass

    @abstractmethod
    async def change(
        self, path: str, lease_id: str, proposed_lease_id: str
    ) -> ActiveLease:
        pass

    @abstractmethod
    async def release(self, path: str, lease_id: str):
        pass

    @abstractmethod
    async def renew(self, path: str, lease_id: str) -> ActiveLease:
        pass

    @abstractmethod
    async def break_lease(self, path: str, break_period: Optional[int] = None) -> int:
        """Breaks the lease and returns the seconds left until it is broken."""
        pass

    @abstractmethod
    async def get_lease(self, path: str) -> Optional[ActiveLease]:
        pass

    @abstractmethod
    async def reap_expired(self):
        """Removes all expired and broken leases from the manager."""
        pass
