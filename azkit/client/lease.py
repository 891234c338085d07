import uuid
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union
from azure.storage.blob.aio import BlobClient, ContainerClient
from azkit.core.abort import AbortSignal
from azkit.core.models import Lease, LeaseOperationOptions, LeaseTarget

logger = logging.getLogger(__name__)

# Attribute of the SDK's generated AzureBlobStorage client holding each
# target's REST operations.
_OPERATION_GROUPS: Dict[LeaseTarget, str] = {
    LeaseTarget.CONTAINER: "container",
    LeaseTarget.BLOB: "blob",
}


def lease_target(client: Any) -> LeaseTarget:
    if isinstance(client, ContainerClient):
        return LeaseTarget.CONTAINER
    if isinstance(client, BlobClient):
        return LeaseTarget.BLOB
    raise TypeError(
        f"Expected an async ContainerClient or BlobClient, got {type(client).__name__}"
    )


def lease_from_response(pipeline_response, deserialized, response_headers) -> Lease:
    """`cls` hook for the generated operations: keeps headers and raw response."""
    return Lease.from_headers(
        response_headers, http_response=pipeline_response.http_response
    )


class LeaseClient:
    """Manages the lease of a container or a blob.

    The client only caches the lease id. Every lease rule (valid durations,
    conflicts, id mismatches) is enforced by the service, and its errors
    (azure.core.exceptions.HttpResponseError) are raised to the caller
    unchanged.
    """

    def __init__(
        self, client: Union[ContainerClient, BlobClient], lease_id: Optional[str] = None
    ):
        self._target = lease_target(client)
        self._url = client.url
        self._operations = getattr(client._client, _OPERATION_GROUPS[self._target])
        self._lease_id = lease_id or str(uuid.uuid4())

    @property
    def lease_id(self) -> str:
        return self._lease_id

    @property
    def url(self) -> str:
        return self._url

    @property
    def target(self) -> LeaseTarget:
        return self._target

    async def _forward(
        self,
        operation: Callable[..., Awaitable[Lease]],
        options: Optional[LeaseOperationOptions],
        *args,
        **kwargs,
    ) -> Lease:
        options = options or LeaseOperationOptions()
        signal = options.abort_signal or AbortSignal.none
        return await signal.run(
            operation(
                *args,
                modified_access_conditions=options.modified_access_conditions,
                cls=lease_from_response,
                **kwargs,
            )
        )

    async def acquire_lease(
        self, duration: int, options: Optional[LeaseOperationOptions] = None
    ) -> Lease:
        """Takes a lease for duration seconds (15 to 60, or -1 for infinite)."""
        return await self._forward(
            self._operations.acquire_lease,
            options,
            duration=duration,
            proposed_lease_id=self._lease_id,
        )

    async def change_lease(
        self, proposed_lease_id: str, options: Optional[LeaseOperationOptions] = None
    ) -> Lease:
        response = await self._forward(
            self._operations.change_lease,
            options,
            self._lease_id,
            proposed_lease_id,
        )
        logger.debug(f"Lease on {self._url} changed to {proposed_lease_id}")
        self._lease_id = proposed_lease_id
        return response

    async def release_lease(
        self, options: Optional[LeaseOperationOptions] = None
    ) -> Lease:
        return await self._forward(
            self._operations.release_lease, options, self._lease_id
        )

    async def renew_lease(self, options: Optional[LeaseOperationOptions] = None) -> Lease:
        return await self._forward(self._operations.renew_lease, options, self._lease_id)

    async def break_lease(
        self, break_period: Optional[int], options: Optional[LeaseOperationOptions] = None
    ) -> Lease:
        """Ends the lease; no new lease can be taken until break_period elapses."""
        return await self._forward(
            self._operations.break_lease, options, break_period=break_period
        )
