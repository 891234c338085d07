import asyncio
import math
import time
import uuid
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional
from azkit.core.interfaces import ILeaseManager
from azkit.core.models import ActiveLease, LeaseState, ModifiedAccessConditions, Resource

logger = logging.getLogger(__name__)

INFINITE = -1
MIN_DURATION = 15
MAX_DURATION = 60
MAX_BREAK_PERIOD = 60


class LeaseError(Exception):
    def __init__(self, status_code: int, error_code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


def _conflict(error_code: str, message: str) -> LeaseError:
    return LeaseError(409, error_code, message)


class InMemoryLeaseManager(ILeaseManager):
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        # path -> ActiveLease
        self._leases: Dict[str, ActiveLease] = {}
        # path -> Resource, created on first touch
        self._resources: Dict[str, Resource] = {}
        self._lock = asyncio.Lock()
        self._reaper_task: Optional[asyncio.Task] = None

    def start_reaper(self, interval: float = 60.0):
        if self._reaper_task is None:
            self._reaper_task = asyncio.create_task(self._reap_loop(interval))

    async def _reap_loop(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            await self.reap_expired()

    def reset(self):
        self._leases.clear()
        self._resources.clear()
        self._lock = asyncio.Lock()

    def _touch(self, path: str) -> Resource:
        resource = self._resources.get(path)
        if resource is None:
            now = datetime.fromtimestamp(int(self._clock()), tz=timezone.utc)
            resource = Resource(etag=f'"0x{uuid.uuid4().hex[:15].upper()}"', last_modified=now)
            self._resources[path] = resource
        return resource

    async def get_resource(self, path: str) -> Resource:
        async with self._lock:
            return self._touch(path)

    async def check_conditions(
        self,
        path: str,
        conditions: ModifiedAccessConditions,
        etag_conditions: bool = True,
    ) -> Resource:
        async with self._lock:
            resource = self._touch(path)
            failed = False
            if conditions.if_modified_since is not None:
                failed |= resource.last_modified <= conditions.if_modified_since
            if conditions.if_unmodified_since is not None:
                failed |= resource.last_modified > conditions.if_unmodified_since
            if etag_conditions and conditions.if_match is not None:
                failed |= conditions.if_match not in ("*", resource.etag)
            if etag_conditions and conditions.if_none_match is not None:
                failed |= conditions.if_none_match in ("*", resource.etag)
            if failed:
                raise LeaseError(
                    412,
                    "ConditionNotMet",
                    "The condition specified using HTTP conditional header(s) is not met.",
                )
            return resource

    def _expiry(self, duration: int, now: float) -> Optional[float]:
        return None if duration == INFINITE else now + duration

    def _matching_lease(self, path: str, lease_id: str) -> ActiveLease:
        lease = self._leases.get(path)
        if lease is None:
            raise _conflict(
                "LeaseNotPresentWithLeaseOperation",
                "There is currently no lease on the resource.",
            )
        if lease.lease_id != lease_id:
            raise _conflict(
                "LeaseIdMismatchWithLeaseOperation",
                "The lease ID specified did not match the lease ID for the resource.",
            )
        return lease

    async def acquire(
        self, path: str, duration: int, proposed_lease_id: Optional[str] = None
    ) -> ActiveLease:
        if duration != INFINITE and not MIN_DURATION <= duration <= MAX_DURATION:
            raise LeaseError(
                400,
                "InvalidHeaderValue",
                "Lease duration must be 15 to 60 seconds or -1 for infinite.",
            )

        async with self._lock:
            self._touch(path)
            now = self._clock()
            existing = self._leases.get(path)
            state = existing.state(now) if existing else LeaseState.AVAILABLE

            if state == LeaseState.LEASED and existing.lease_id != proposed_lease_id:
                raise _conflict(
                    "LeaseAlreadyPresent", "There is already a lease present."
                )
            if state == LeaseState.BREAKING:
                raise _conflict(
                    "LeaseIsBreakingAndCannotBeAcquired",
                    "There is already a breaking lease present.",
                )

            lease = ActiveLease(
                lease_id=proposed_lease_id or str(uuid.uuid4()),
                duration=duration,
                expiry=self._expiry(duration, now),
            )
            self._leases[path] = lease
            logger.debug(f"Lease {lease.lease_id} acquired on {path}")
            return lease

    async def change(
        self, path: str, lease_id: str, proposed_lease_id: str
    ) -> ActiveLease:
        async with self._lock:
            now = self._clock()
            lease = self._leases.get(path)
            if lease is None or lease.state(now) == LeaseState.EXPIRED:
                raise _conflict(
                    "LeaseNotPresentWithLeaseOperation",
                    "There is currently no lease on the resource.",
                )
            state = lease.state(now)
            if state == LeaseState.BREAKING:
                raise _conflict(
                    "LeaseIsBreakingAndCannotBeChanged",
                    "The lease ID matched, but the lease is currently in breaking state.",
                )
            if state == LeaseState.BROKEN:
                raise _conflict(
                    "LeaseIsBrokenAndCannotBeChanged",
                    "The lease ID matched, but the lease has been broken.",
                )
            # Repeating a change that already happened succeeds.
            if lease.lease_id not in (lease_id, proposed_lease_id):
                raise _conflict(
                    "LeaseIdMismatchWithLeaseOperation",
                    "The lease ID specified did not match the lease ID for the resource.",
                )
            lease.lease_id = proposed_lease_id
            return lease

    async def release(self, path: str, lease_id: str):
        async with self._lock:
            self._matching_lease(path, lease_id)
            del self._leases[path]
            logger.debug(f"Lease {lease_id} released on {path}")

    async def renew(self, path: str, lease_id: str) -> ActiveLease:
        async with self._lock:
            lease = self._matching_lease(path, lease_id)
            now = self._clock()
            if lease.state(now) in (LeaseState.BREAKING, LeaseState.BROKEN):
                raise _conflict(
                    "LeaseIsBrokenAndCannotBeRenewed",
                    "The lease ID matched, but the lease has been broken explicitly "
                    "and cannot be renewed.",
                )
            lease.expiry = self._expiry(lease.duration, now)
            return lease

    async def break_lease(self, path: str, break_period: Optional[int] = None) -> int:
        if break_period is not None and not 0 <= break_period <= MAX_BREAK_PERIOD:
            raise LeaseError(
                400, "InvalidHeaderValue", "Break period must be 0 to 60 seconds."
            )

        async with self._lock:
            lease = self._leases.get(path)
            if lease is None:
                raise _conflict(
                    "LeaseNotPresentWithLeaseOperation",
                    "There is currently no lease on the resource.",
                )
            now = self._clock()
            state = lease.state(now)

            if state in (LeaseState.BROKEN, LeaseState.EXPIRED):
                if lease.break_at is None:
                    lease.break_at = now
                return 0

            if state == LeaseState.BREAKING:
                remaining = lease.break_at - now
            elif lease.expiry is None:
                remaining = 0 if break_period is None else break_period
            else:
                remaining = lease.expiry - now

            if break_period is not None:
                remaining = min(remaining, break_period)
            lease.break_at = now + remaining
            logger.debug(f"Lease {lease.lease_id} on {path} breaking in {remaining}s")
            return int(math.ceil(remaining))

    async def get_lease(self, path: str) -> Optional[ActiveLease]:
        async with self._lock:
            return self._leases.get(path)

    async def get_state(self, path: str) -> LeaseState:
        async with self._lock:
            lease = self._leases.get(path)
            if lease is None:
                return LeaseState.AVAILABLE
            return lease.state(self._clock())

    async def reap_expired(self):
        async with self._lock:
            now = self._clock()
            expired_paths = [
                path
                for path, lease in self._leases.items()
                if lease.state(now) in (LeaseState.EXPIRED, LeaseState.BROKEN)
            ]
            for path in expired_paths:
                del self._leases[path]
