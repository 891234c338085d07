import asyncio
import logging
import argparse
import uvicorn
from azkit.server.api import app, lease_manager


async def main():
    parser = argparse.ArgumentParser(description="azkit Blob Lease Emulator")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=10000, help="Port to bind to")
    parser.add_argument(
        "--reaper-interval",
        type=float,
        default=30.0,
        help="Expired lease reaper interval in seconds",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    lease_manager.start_reaper(interval=args.reaper_interval)

    config = uvicorn.Config(
        app, host=args.host, port=args.port, log_level=args.log_level.lower()
    )
    server = uvicorn.Server(config)

    print(f"Starting lease emulator on http://{args.host}:{args.port}/<account>...")
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
