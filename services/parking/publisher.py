# ============================================================
# publisher.py - Domain event sinks
# ------------------------------------------------------------
# The ledger reports what it did (ReservationCreated,
# ReservationCancelled, PenaltyApplied, PenaltyReversed,
# UserSuspended) to an injected publisher:
#
#   - RabbitPublisher : fanout exchange "events", JSON body
#                       {"type": ..., "payload": ...}
#   - LogPublisher    : writes the event to the log only
# ============================================================
import json
import logging

import pika

logger = logging.getLogger(__name__)

EXCHANGE = "events"


class EventPublisher:
    def publish(self, event_type: str, payload: dict) -> None:
        raise NotImplementedError


class LogPublisher(EventPublisher):
    def publish(self, event_type, payload):
        logger.info("[event] %s %s", event_type, payload)


class RabbitPublisher(EventPublisher):
    """Opens a connection per event; traffic is a handful of events per booking."""

    def __init__(self, host: str):
        self.host = host

    def publish(self, event_type, payload):
        conn = pika.BlockingConnection(pika.ConnectionParameters(host=self.host))
        try:
            ch = conn.channel()
            # durable so the exchange survives a broker restart
            ch.exchange_declare(exchange=EXCHANGE, exchange_type="fanout", durable=True)
            message = {"type": event_type, "payload": payload}
            ch.basic_publish(exchange=EXCHANGE, routing_key="", body=json.dumps(message, default=str))
            logger.debug("[event] %s %s", event_type, payload)
        finally:
            conn.close()


def make_publisher(rabbit_host: str = None) -> EventPublisher:
    if rabbit_host:
        return RabbitPublisher(rabbit_host)
    return LogPublisher()
