"""
Kafka producer for outbound push notifications
"""
from aiokafka import AIOKafkaProducer
from typing import Optional, Dict, Any
import json
import logging
from datetime import datetime

from .config import settings

logger = logging.getLogger(__name__)


class KafkaProducerManager:
    """Queues push events; delivery to devices is done by a downstream worker"""

    def __init__(self, topic: str = settings.KAFKA_TOPIC_PUSH_NOTIFICATIONS):
        self.topic = topic
        self.producer: Optional[AIOKafkaProducer] = None

    async def start(self):
        """Connect to the brokers; push stays off when Kafka is disabled or unreachable"""
        if not settings.KAFKA_ENABLED:
            logger.info("Kafka is disabled, push notifications will be skipped")
            return

        try:
            self.producer = AIOKafkaProducer(
                bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
                key_serializer=lambda v: str(v).encode("utf-8") if v else None,
            )
            await self.producer.start()
            logger.info(f"Push producer started for topic {self.topic}")
        except Exception as e:
            logger.warning(f"Failed to start Kafka producer: {e}. Continuing without push.")
            self.producer = None

    async def stop(self):
        if self.producer:
            await self.producer.stop()
            self.producer = None
            logger.info("Push producer stopped")

    async def notify_externally(
        self,
        user_id: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ):
        """
        Queue a push notification for a user; never raises

        Args:
            user_id: Recipient, also used as the partition key
            title: Push title
            body: Push body
            data: Extra key/value pairs; None values are dropped, the rest sent as strings
        """
        if not self.producer:
            logger.debug(f"Push disabled, skipping notification for {user_id}")
            return

        event_data = {
            "event_type": "push_notification",
            "user_id": user_id,
            "title": title,
            "body": body,
            "data": {k: str(v) for k, v in (data or {}).items() if v is not None},
            "timestamp": datetime.utcnow().isoformat(),
        }
        try:
            await self.producer.send(self.topic, value=event_data, key=user_id)
            logger.info(f"Queued push notification for {user_id}")
        except Exception as e:
            logger.error(f"Error queueing push notification for {user_id}: {e}")


# Global producer instance
kafka_producer = KafkaProducerManager()
