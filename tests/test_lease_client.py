"""
LeaseClient routing and id state, with the SDK's generated lease operations
replaced by AsyncMocks on the wrapped client.
"""

import asyncio
import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from azure.core.exceptions import ResourceExistsError
from azure.storage.blob import ContainerClient as SyncContainerClient
from azure.storage.blob.aio import ContainerClient

from azkit.client.lease import LeaseClient, lease_from_response
from azkit.core.abort import AbortController, AbortError
from azkit.core.models import (
    Lease,
    LeaseOperationOptions,
    LeaseTarget,
    ModifiedAccessConditions,
)

CONTAINER_URL = "https://account.blob.core.windows.net/c"

OPERATION_NAMES = [
    "acquire_lease",
    "change_lease",
    "release_lease",
    "renew_lease",
    "break_lease",
]


def mock_operations():
    return SimpleNamespace(
        **{name: AsyncMock(return_value=Lease()) for name in OPERATION_NAMES}
    )


@pytest.fixture
def container_client():
    return ContainerClient.from_container_url(CONTAINER_URL)


@pytest.fixture
def blob(container_client):
    client = container_client.get_blob_client("dir/file.txt")
    operations = mock_operations()
    with patch.object(client._client, "blob", operations):
        yield SimpleNamespace(client=client, operations=operations)


def test_generated_lease_ids_are_unique(container_client):
    ids = {LeaseClient(container_client).lease_id for _ in range(50)}

    assert len(ids) == 50
    assert all(ids)


def test_explicit_lease_id_is_kept(container_client):
    blob_client = container_client.get_blob_client("dir/file.txt")
    lease = LeaseClient(blob_client, "my-lease")

    assert lease.lease_id == "my-lease"
    assert lease.url == f"{CONTAINER_URL}/dir/file.txt"
    assert lease.target == LeaseTarget.BLOB


def test_empty_lease_id_is_replaced(container_client):
    assert LeaseClient(container_client, "").lease_id


@pytest.mark.parametrize(
    "client",
    [SyncContainerClient.from_container_url(CONTAINER_URL), SimpleNamespace(url="x")],
)
def test_only_async_storage_clients_are_accepted(client):
    with pytest.raises(TypeError):
        LeaseClient(client)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "make_client, target, used_group, idle_group",
    [
        (lambda container: container, LeaseTarget.CONTAINER, "container", "blob"),
        (
            lambda container: container.get_blob_client("b"),
            LeaseTarget.BLOB,
            "blob",
            "container",
        ),
    ],
)
async def test_target_selects_operation_group(
    container_client, make_client, target, used_group, idle_group
):
    client = make_client(container_client)
    used = mock_operations()
    idle = mock_operations()

    with patch.object(client._client, used_group, used), patch.object(
        client._client, idle_group, idle
    ):
        lease = LeaseClient(client, "lease-1")
        await lease.acquire_lease(15)
        await lease.renew_lease()
        await lease.release_lease()

    assert lease.target == target
    used.acquire_lease.assert_awaited_once()
    used.renew_lease.assert_awaited_once()
    used.release_lease.assert_awaited_once()
    for name in OPERATION_NAMES:
        getattr(idle, name).assert_not_awaited()


@pytest.mark.asyncio
async def test_acquire_forwards_current_id_and_conditions(blob):
    conditions = ModifiedAccessConditions(if_match='"0x1"')
    lease = LeaseClient(blob.client, "lease-1")

    await lease.acquire_lease(
        -1,
        LeaseOperationOptions(
            abort_signal=AbortController().signal,
            modified_access_conditions=conditions,
        ),
    )

    blob.operations.acquire_lease.assert_awaited_once_with(
        duration=-1,
        proposed_lease_id="lease-1",
        modified_access_conditions=conditions,
        cls=lease_from_response,
    )


@pytest.mark.asyncio
async def test_missing_options_forward_no_conditions(blob):
    lease = LeaseClient(blob.client, "lease-1")

    await lease.break_lease(10)

    blob.operations.break_lease.assert_awaited_once_with(
        break_period=10,
        modified_access_conditions=None,
        cls=lease_from_response,
    )


@pytest.mark.asyncio
async def test_duration_is_not_validated_locally(blob):
    lease = LeaseClient(blob.client, "lease-1")

    await lease.acquire_lease(5)

    assert blob.operations.acquire_lease.await_args.kwargs["duration"] == 5


@pytest.mark.asyncio
async def test_successful_change_updates_id_for_later_calls(blob):
    lease = LeaseClient(blob.client, "old-id")

    await lease.change_lease("new-id")
    await lease.renew_lease()
    await lease.release_lease()

    blob.operations.change_lease.assert_awaited_once_with(
        "old-id",
        "new-id",
        modified_access_conditions=None,
        cls=lease_from_response,
    )
    assert lease.lease_id == "new-id"
    assert blob.operations.renew_lease.await_args.args == ("new-id",)
    assert blob.operations.release_lease.await_args.args == ("new-id",)


@pytest.mark.asyncio
async def test_failed_change_keeps_previous_id(blob):
    blob.operations.change_lease.side_effect = ResourceExistsError(
        "The lease ID specified did not match the lease ID for the blob."
    )
    lease = LeaseClient(blob.client, "old-id")

    with pytest.raises(ResourceExistsError):
        await lease.change_lease("new-id")
    await lease.release_lease()

    assert lease.lease_id == "old-id"
    assert blob.operations.release_lease.await_args.args == ("old-id",)


@pytest.mark.asyncio
async def test_renew_and_break_keep_id(blob):
    blob.operations.renew_lease.return_value = Lease(lease_id="old-id")
    lease = LeaseClient(blob.client, "old-id")

    renewed = await lease.renew_lease()
    await lease.break_lease(0)

    assert renewed.lease_id == "old-id"
    assert lease.lease_id == "old-id"


@pytest.mark.asyncio
async def test_aborted_signal_skips_operation(blob):
    controller = AbortController()
    controller.abort()
    lease = LeaseClient(blob.client, "lease-1")

    with pytest.raises(AbortError):
        await lease.acquire_lease(
            15, LeaseOperationOptions(abort_signal=controller.signal)
        )

    blob.operations.acquire_lease.assert_not_awaited()


@pytest.mark.asyncio
async def test_abort_cancels_operation_in_flight(blob):
    started = asyncio.Event()
    cancelled = []

    async def hang(*args, **kwargs):
        started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    blob.operations.renew_lease.side_effect = hang
    controller = AbortController()
    lease = LeaseClient(blob.client, "lease-1")

    task = asyncio.create_task(
        lease.renew_lease(LeaseOperationOptions(abort_signal=controller.signal))
    )
    await started.wait()
    controller.abort()

    with pytest.raises(AbortError):
        await task
    assert cancelled == [True]


def test_lease_from_response_keeps_raw_response():
    raw = SimpleNamespace(status_code=202, headers={})
    modified = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    lease = lease_from_response(
        SimpleNamespace(http_response=raw),
        None,
        {
            "ETag": '"0x8D"',
            "Last-Modified": modified,
            "x-ms-lease-time": 7,
            "x-ms-request-id": "req-1",
        },
    )

    assert lease.etag == '"0x8D"'
    assert lease.last_modified == modified
    assert lease.lease_time == 7
    assert lease.request_id == "req-1"
    assert lease.http_response is raw
