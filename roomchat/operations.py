import asyncio
from dataclasses import dataclass
from typing import Iterable, Optional, Set

from websockets.exceptions import ConnectionClosedOK, ConnectionClosedError

from roomchat.config import KEEP_ALIVE_INTERVAL, MAX_QUEUE_SIZE, logger
from roomchat.models import KEEP_ALIVE, KeepAlive, OutputMessage, is_connection_local, render
from roomchat.protocol import UserSlot

# маркер для подписчика, который не успевает читать
TOO_SLOW = object()


@dataclass(frozen=True)
class Local:
    """Безадресное сообщение своего соединения: доставляется без проверки for_user."""
    message: OutputMessage


async def send_to_ws_safe(ws, text: str):
    try:
        await ws.send(text)
    except (ConnectionClosedOK, ConnectionClosedError):
        pass
    except Exception as e:
        logger.error(f"Error sending message: {e}", exc_info=True)


class Subscription:
    def __init__(self, maxsize: int = MAX_QUEUE_SIZE):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.too_slow = False

    def offer(self, item) -> bool:
        try:
            self.queue.put_nowait(item)
            return True
        except asyncio.QueueFull:
            return False

    def drop(self):
        """Очищает очередь и оставляет в ней только маркер TOO_SLOW."""
        self.too_slow = True
        while not self.queue.empty():
            self.queue.get_nowait()
            self.queue.task_done()
        self.queue.put_nowait(TOO_SLOW)


class Topic:
    """Общий канал: каждое опубликованное сообщение получает каждый подписчик.

    publish() не блокирует; раздачу по очередям подписчиков делает dispatcher().
    """

    def __init__(self, max_queue_size: int = MAX_QUEUE_SIZE):
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.subscribers: Set[Subscription] = set()
        self.max_queue_size = max_queue_size
        self.task: Optional[asyncio.Task] = None

    def subscribe(self) -> Subscription:
        sub = Subscription(self.max_queue_size)
        self.subscribers.add(sub)
        return sub

    def unsubscribe(self, sub: Subscription):
        self.subscribers.discard(sub)

    def publish(self, message: OutputMessage):
        self.inbox.put_nowait(message)

    def ensure_dispatcher(self):
        if self.task is None or self.task.done():
            self.task = asyncio.create_task(self.dispatcher())

    async def dispatcher(self):
        """Consumer: читает inbox и раскладывает сообщения по очередям подписчиков."""
        logger.debug("Topic dispatcher started")
        try:
            while True:
                item = await self.inbox.get()
                for sub in list(self.subscribers):
                    if not sub.offer(item):
                        logger.warning("Subscriber is too slow, disconnecting")
                        self.unsubscribe(sub)
                        sub.drop()
                self.inbox.task_done()
        except asyncio.CancelledError:
            logger.info("Topic dispatcher cancelled")
            while not self.inbox.empty():
                self.inbox.get_nowait()
                self.inbox.task_done()
            raise
        except Exception as e:
            logger.critical(f"Unhandled exception in topic dispatcher: {e}", exc_info=True)
            raise

    async def close(self):
        if self.task and not self.task.done():
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        self.task = None
        self.subscribers.clear()


def publish_all(topic: Topic, sub: Subscription, messages: Iterable[OutputMessage]):
    """Адресованные сообщения идут в общий канал, безадресные сразу в своё соединение."""
    for message in messages:
        if is_connection_local(message):
            sub.offer(Local(message))
        else:
            topic.publish(message)


async def client_writer(ws, sub: Subscription, slot: UserSlot):
    """Отправляет в websocket сообщения из очереди подписки, адресованные этому соединению."""
    try:
        while True:
            item = await sub.queue.get()
            sub.queue.task_done()
            if item is TOO_SLOW:
                await send_to_ws_safe(ws, "Too slow, disconnecting")
                await ws.close()
                return
            if isinstance(item, Local):
                item = item.message
            elif not item.for_user(slot.user):
                continue
            if isinstance(item, KeepAlive):
                try:
                    await ws.ping()
                except (ConnectionClosedOK, ConnectionClosedError):
                    return
                continue
            text = render(item)
            if text is not None:
                await send_to_ws_safe(ws, text)
    except asyncio.CancelledError:
        return


async def keep_alive(topic: Topic, interval: float = KEEP_ALIVE_INTERVAL):
    """Раз в interval секунд публикует KeepAlive всем подключённым."""
    while True:
        await asyncio.sleep(interval)
        try:
            topic.publish(KEEP_ALIVE)
        except Exception as e:
            logger.error(f"Keep-alive publish failed: {e}", exc_info=True)
