import abc
from asyncio import AbstractEventLoop
from logging import getLogger

import pika
from pika.adapters.asyncio_connection import AsyncioConnection
from pika.channel import Channel
from pika.exceptions import AMQPError
from pika.exchange_type import ExchangeType
from pika.frame import Method
from pika.spec import Basic, BasicProperties, DeliveryMode

logger = getLogger(__name__)


class _AsyncClient(abc.ABC):
    """Connection and topology handling shared by consumers and publishers.

    Both sides declare the exchange, declare their queue and bind it with
    `routing_key`, then call `on_ready`.
    """

    def __init__(
        self,
        amqp_url: str,
        exchange_name: str,
        exchange_type: ExchangeType,
        queue_name: str,
        connection_name: str,
        routing_key: str | None = None,
        durable: bool = True,
    ):
        self.exchange_name = exchange_name
        self.exchange_type = exchange_type

        self.queue_name = queue_name
        # NOTE: If routing_key is not provided, it will default to the queue_name
        self.routing_key = routing_key or queue_name
        self.durable = durable

        self.conn_name = connection_name

        self._url = amqp_url

        # NOTE: These will be set when the connection is established
        self._connection: AsyncioConnection | None = None
        self._channel: Channel | None = None
        self._event_loop: AbstractEventLoop | None = None

        self._closing = False
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready and self._channel is not None and self._channel.is_open

    # Callbacks from a connection or channel replaced by `restart` are ignored

    def on_connection_open(self, connection: AsyncioConnection):
        if connection is not self._connection:
            return
        connection.channel(on_open_callback=self.on_channel_open)

    def on_connection_open_error(self, _connection: AsyncioConnection, error: BaseException):
        self._ready = False
        logger.error(f"[{self.conn_name}] Connection open error: {error}")

    def on_connection_closed(self, connection: AsyncioConnection, reason: BaseException):
        if connection is not self._connection:
            return
        self._channel = None
        self._ready = False
        if not self._closing:
            logger.error(f"[{self.conn_name}] Connection closed unexpectedly: {reason}")

    def on_channel_open(self, channel: Channel):
        if channel.connection is not self._connection:
            channel.close()
            return
        self._channel = channel
        self._channel.add_on_close_callback(self.on_channel_closed)
        self._channel.exchange_declare(
            exchange=self.exchange_name,
            exchange_type=self.exchange_type,
            durable=self.durable,
            callback=self.on_exchange_declare_ok,
        )

    def on_channel_closed(self, channel: Channel, reason: Exception):
        if channel is not self._channel:
            return
        self._channel = None
        self._ready = False
        if not self._closing:
            logger.warning(f"[{self.conn_name}] Channel closed: {reason}")
        if self._connection is not None and not (
            self._connection.is_closing or self._connection.is_closed
        ):
            self._connection.close()

    def on_exchange_declare_ok(self, _frame: Method):
        assert self._channel is not None
        self._channel.queue_declare(
            queue=self.queue_name, durable=self.durable, callback=self.on_queue_declare_ok
        )

    def on_queue_declare_ok(self, _frame: Method):
        assert self._channel is not None
        self._channel.queue_bind(
            self.queue_name, self.exchange_name, self.routing_key, callback=self.on_bind_ok
        )

    def on_bind_ok(self, _frame: Method):
        self._ready = True
        self.on_ready()

    @abc.abstractmethod
    def on_ready(self): ...

    def run(self, event_loop: AbstractEventLoop | None = None):
        self._closing = False
        self._ready = False
        self._channel = None
        self._event_loop = event_loop

        conn_params = pika.URLParameters(self._url)
        conn_params.client_properties = {"connection_name": self.conn_name}
        self._connection = AsyncioConnection(
            parameters=conn_params,
            on_open_callback=self.on_connection_open,
            on_open_error_callback=self.on_connection_open_error,
            on_close_callback=self.on_connection_closed,
            custom_ioloop=event_loop,
        )

    def stop(self):
        self._closing = True
        self._ready = False

        if self._channel is not None and self._channel.is_open:
            self._channel.close()

        if self._connection is not None and not (
            self._connection.is_closing or self._connection.is_closed
        ):
            self._connection.close()

    def restart(self):
        """Drop the current connection (if any) and connect again on the same event loop.

        Safe to call from any thread. Pika connections are not thread-safe, so while the
        event loop runs the restart is handed over to it.
        """
        if self._event_loop is not None and self._event_loop.is_running():
            self._event_loop.call_soon_threadsafe(self._restart)
        else:
            self._restart()

    def _restart(self):
        self.stop()
        self.run(event_loop=self._event_loop)


# Reference: https://github.com/pika/pika/blob/main/examples/asynchronous_consumer_example.py
class AsyncConsumer(_AsyncClient):
    def __init__(self, *args, prefetch_count: int = 1, **kwargs):
        super().__init__(*args, **kwargs)
        self.prefetch_count = prefetch_count
        self._consumer_tag: str | None = None

    def on_ready(self):
        assert self._channel is not None
        self._channel.basic_qos(prefetch_count=self.prefetch_count, callback=self.on_basic_qos_ok)

    def on_basic_qos_ok(self, _frame: Method):
        assert self._channel is not None
        self._channel.add_on_cancel_callback(self.on_consumer_cancelled)
        self._consumer_tag = self._channel.basic_consume(self.queue_name, self.on_message)

    def on_consumer_cancelled(self, _frame: Method):
        if self._channel is not None:
            self._channel.close()

    def on_message(
        self,
        channel: Channel,
        basic_deliver: Basic.Deliver,
        properties: BasicProperties,
        body: bytes,
    ):
        try:
            self.message_callback(basic_deliver, properties, body)
        except Exception:
            # A message that cannot be handled is dropped rather than redelivered forever
            logger.exception(f"[{self.conn_name}] Failed to handle message")
            channel.basic_nack(basic_deliver.delivery_tag, requeue=False)
            return
        channel.basic_ack(basic_deliver.delivery_tag)

    @abc.abstractmethod
    def message_callback(
        self, basic_deliver: Basic.Deliver, properties: BasicProperties, body: bytes
    ): ...

    def stop(self):
        if self._channel is not None and self._consumer_tag is not None:
            self._channel.basic_cancel(self._consumer_tag)
            self._consumer_tag = None
        super().stop()


class AsyncPublisher(_AsyncClient):
    """Publisher with broker delivery confirmations.

    A message handed to `publish` can still be lost afterwards: the channel may be
    gone by the time the event loop sends it, the broker may nack it, or the channel
    may close before confirming it. Each such message is reported once to
    `on_publish_failed` with the `message_id` it was published with.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._acked = 0
        self._nacked = 0
        self._message_number = 0
        # delivery tag -> message id
        self._deliveries: dict[int, str | None] = {}

    def on_ready(self):
        assert self._channel is not None
        self._channel.confirm_delivery(self.on_delivery_confirmation)

    def on_publish_failed(self, message_id: str | None):
        """Runs on the event loop thread for every message that did not reach the broker."""

    def _fail_outstanding(self):
        outstanding = list(self._deliveries.values())
        self._deliveries.clear()
        if outstanding:
            logger.warning(f"[{self.conn_name}] {len(outstanding)} deliveries left unconfirmed")
        for message_id in outstanding:
            self.on_publish_failed(message_id)

    def on_delivery_confirmation(self, frame: Method):
        confirmation_type = frame.method.NAME.split(".")[1].lower()
        delivery_tag = frame.method.delivery_tag

        if frame.method.multiple:
            confirmed = [tag for tag in self._deliveries if tag <= delivery_tag]
        else:
            confirmed = [delivery_tag] if delivery_tag in self._deliveries else []
        message_ids = [self._deliveries.pop(tag) for tag in confirmed]

        if confirmation_type == "ack":
            self._acked += len(message_ids)
            return

        self._nacked += len(message_ids)
        logger.warning(f"[{self.conn_name}] Broker rejected delivery {delivery_tag}")
        for message_id in message_ids:
            self.on_publish_failed(message_id)

    def on_channel_closed(self, channel: Channel, reason: Exception):
        if channel is self._channel:
            self._fail_outstanding()
        super().on_channel_closed(channel, reason)

    def _publish(
        self, body: str, content_type: str, reply_to: str | None, message_id: str | None
    ) -> bool:
        if self._channel is None or not self._channel.is_open:
            logger.warning(f"[{self.conn_name}] Channel closed, message {message_id} not sent")
            return False

        try:
            self._channel.basic_publish(
                self.exchange_name,
                self.routing_key,
                body,
                properties=BasicProperties(
                    content_type=content_type,
                    delivery_mode=DeliveryMode.Persistent,
                    reply_to=reply_to,
                    message_id=message_id,
                ),
            )
        except AMQPError as publish_err:
            logger.error(
                f"[{self.conn_name}] Failed to publish message {message_id}: {publish_err}"
            )
            return False

        # Delivery tags are sequential per channel once confirms are enabled
        self._message_number += 1
        self._deliveries[self._message_number] = message_id
        return True

    def _publish_or_report(
        self, body: str, content_type: str, reply_to: str | None, message_id: str | None
    ):
        if not self._publish(body, content_type, reply_to, message_id):
            self.on_publish_failed(message_id)

    def publish(
        self,
        body: str,
        content_type: str = "application/json",
        reply_to: str | None = None,
        message_id: str | None = None,
    ) -> bool:
        """Publish from any thread. Returns False when the channel is not ready.

        While the event loop runs the message is only scheduled, so True means "accepted";
        a later failure goes to `on_publish_failed`.
        """
        if not self.is_ready:
            return False

        if self._event_loop is None or not self._event_loop.is_running():
            return self._publish(body, content_type, reply_to, message_id)

        self._event_loop.call_soon_threadsafe(
            self._publish_or_report, body, content_type, reply_to, message_id
        )
        return True

    def run(self, event_loop: AbstractEventLoop | None = None):
        # Whatever the previous channel did not confirm is lost with it
        self._fail_outstanding()
        self._acked = 0
        self._nacked = 0
        self._message_number = 0
        super().run(event_loop=event_loop)
