import asyncio
import uuid
from azure.storage.blob.aio import ContainerClient
from azkit.client.lease import LeaseClient


async def main():
    # Start the emulator first: python -m azkit.server.run
    async with ContainerClient.from_container_url(
        "http://127.0.0.1:10000/devstoreaccount1/demo-container"
    ) as container:
        lease = LeaseClient(container.get_blob_client("report.csv"))

        acquired = await lease.acquire_lease(duration=15)
        print(f"Acquired lease {acquired.lease_id} on {lease.url}")

        renewed = await lease.renew_lease()
        print(f"Renewed lease {renewed.lease_id}")

        await lease.change_lease(str(uuid.uuid4()))
        print(f"Lease id is now {lease.lease_id}")

        broken = await lease.break_lease(break_period=5)
        print(f"Lease breaks in {broken.lease_time}s")

        await lease.release_lease()
        print("Released lease")


if __name__ == "__main__":
    asyncio.run(main())
