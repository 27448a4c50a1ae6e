"""RabbitMQ publisher for domain events"""
import json
import logging
from typing import Dict

import pika

from app.config import settings

logger = logging.getLogger(__name__)


class RabbitMQPublisher:
    """Publishes JSON messages to a durable topic exchange, one connection per publish"""

    def __init__(self, exchange: str = None):
        self.host = settings.rabbitmq_host
        self.port = settings.rabbitmq_port
        self.user = settings.rabbitmq_user
        self.password = settings.rabbitmq_password
        self.exchange = exchange or settings.rabbitmq_session_exchange

    def _parameters(self) -> pika.ConnectionParameters:
        credentials = pika.PlainCredentials(self.user, self.password)
        return pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            credentials=credentials,
            heartbeat=600,
            blocked_connection_timeout=30,
            socket_timeout=5,
        )

    def publish(self, routing_key: str, message: Dict) -> None:
        connection = pika.BlockingConnection(self._parameters())
        try:
            channel = connection.channel()
            channel.exchange_declare(exchange=self.exchange, exchange_type="topic", durable=True)
            channel.basic_publish(
                exchange=self.exchange,
                routing_key=routing_key,
                body=json.dumps(message, default=str),
                properties=pika.BasicProperties(
                    content_type="application/json",
                    delivery_mode=2,
                ),
            )
            logger.info(f"Published {routing_key} to {self.exchange}")
        finally:
            connection.close()
