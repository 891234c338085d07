import sys
import asyncio
import logging
import argparse
from typing import List, Optional
from dotenv import load_dotenv
from azkit.client.producer import ProducerClient
from azkit.core.models import Scientist

logger = logging.getLogger(__name__)

SCIENTISTS: List[Scientist] = [
    Scientist(name="Einstein", first_name="Albert"),
    Scientist(name="Heisenberg", first_name="Werner"),
    Scientist(name="Curie", first_name="Marie"),
    Scientist(name="Hawking", first_name="Steven"),
    Scientist(name="Newton", first_name="Isaac"),
    Scientist(name="Bohr", first_name="Niels"),
    Scientist(name="Faraday", first_name="Michael"),
    Scientist(name="Galilei", first_name="Galileo"),
    Scientist(name="Kepler", first_name="Johannes"),
    Scientist(name="Kopernikus", first_name="Nikolaus"),
]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Send a list of scientists to a Service Bus queue or topic"
    )
    parser.add_argument(
        "--topic",
        action="store_true",
        help="Send to the topic named by TOPIC_NAME instead of QUEUE_NAME",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


async def main(
    scientists: Optional[List[Scientist]] = None, topic: bool = False
) -> int:
    if scientists is None:
        scientists = SCIENTISTS
    async with ProducerClient.from_env(topic=topic) as producer:
        return await producer.send_all(s.to_message() for s in scientists)


def run(argv: Optional[List[str]] = None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    load_dotenv()

    try:
        sent = asyncio.run(main(topic=args.topic))
    except Exception:
        logger.exception("Error occurred")
        sys.exit(1)
    logger.info(f"Sent {sent} messages")


if __name__ == "__main__":
    run()
