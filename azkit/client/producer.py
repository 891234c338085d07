import os
import logging
from typing import Iterable
from azure.servicebus import ServiceBusMessage
from azure.servicebus.aio import ServiceBusClient
from azkit.core.models import OutgoingMessage

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_STRING = "<connection string>"
DEFAULT_QUEUE_NAME = "<queue name>"
DEFAULT_TOPIC_NAME = "<topic name>"


class ProducerClient:
    """Sends messages to one Service Bus queue or topic.

    Owns both the connection (ServiceBusClient) and the sender opened on it;
    close() shuts the sender first and the connection second.
    """

    def __init__(self, connection_string: str, entity_name: str, topic: bool = False):
        self.entity_name = entity_name
        self.topic = topic
        self._client = ServiceBusClient.from_connection_string(connection_string)
        self._sender = None

    @classmethod
    def from_env(cls, topic: bool = False) -> "ProducerClient":
        connection_string = os.environ.get(
            "SERVICE_BUS_CONNECTION_STRING", DEFAULT_CONNECTION_STRING
        )
        if topic:
            entity_name = os.environ.get("TOPIC_NAME", DEFAULT_TOPIC_NAME)
        else:
            entity_name = os.environ.get("QUEUE_NAME", DEFAULT_QUEUE_NAME)
        return cls(connection_string, entity_name, topic=topic)

    async def open(self):
        """Creates the sender; the connection is closed if that fails."""
        if self._sender is not None:
            return
        try:
            if self.topic:
                self._sender = self._client.get_topic_sender(topic_name=self.entity_name)
            else:
                self._sender = self._client.get_queue_sender(queue_name=self.entity_name)
        except Exception:
            await self._client.close()
            raise

    async def close(self):
        try:
            if self._sender is not None:
                await self._sender.close()
        finally:
            await self._client.close()

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def send(self, message: OutgoingMessage):
        await self.open()
        logger.info(f"Sending message: {message.body} - {message.label}")
        await self._sender.send_messages(
            ServiceBusMessage(message.body, subject=message.label)
        )

    async def send_all(self, messages: Iterable[OutgoingMessage]) -> int:
        """Sends messages one at a time, stopping at the first failure."""
        sent = 0
        for message in messages:
            await self.send(message)
            sent += 1
        return sent
