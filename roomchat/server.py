import asyncio

import websockets
from websockets.exceptions import ConnectionClosedOK, ConnectionClosedError

from roomchat.chat_state import ChatStateRef
from roomchat.config import MAX_FRAME_SIZE, MAX_MESSAGE_SIZE, SERVER_HOST, SERVER_PORT, logger
from roomchat.handlers import handle_text
from roomchat.models import ParsingError, Register
from roomchat.operations import Topic, client_writer, keep_alive, publish_all
from roomchat.protocol import Protocol, UserSlot

# --- Глобальное состояние процесса ---
chat_state = ChatStateRef()
topic = Topic()
protocol = Protocol(chat_state)


async def ws_handler(ws):
    """Основной обработчик подключения клиента."""
    topic.ensure_dispatcher()
    sub = topic.subscribe()
    slot = UserSlot()
    writer = asyncio.create_task(client_writer(ws, sub, slot))
    logger.info(f"Client connected: {ws.remote_address}")

    try:
        publish_all(topic, sub, [Register(None)])

        async for raw in ws:
            if isinstance(raw, bytes):
                raw = raw.decode('utf-8', errors='replace')

            if len(raw) > MAX_MESSAGE_SIZE:
                publish_all(topic, sub, [
                    ParsingError(slot.user, f"Message too large. Max size: {MAX_MESSAGE_SIZE} bytes")
                ])
                continue

            try:
                messages = await handle_text(protocol, slot, raw)
            except Exception as e:
                logger.error(f"Handler error for input {raw[:50]!r}: {e}", exc_info=True)
                messages = [ParsingError(slot.user, "Internal error")]

            publish_all(topic, sub, messages)

    except (ConnectionClosedOK, ConnectionClosedError):
        pass
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.critical(f"Unhandled exception in ws_handler: {e}", exc_info=True)
    finally:
        topic.unsubscribe(sub)
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
        publish_all(topic, sub, await protocol.disconnect(slot))
        logger.info(f"Client disconnected: {ws.remote_address}")


def serve(host=SERVER_HOST, port=SERVER_PORT):
    """websockets.serve с лимитом кадра выше MAX_MESSAGE_SIZE, чтобы длинное сообщение получило ответ, а не обрыв."""
    return websockets.serve(ws_handler, host, port, max_size=MAX_FRAME_SIZE)


async def start_server(host=SERVER_HOST, port=SERVER_PORT):
    """Запускает WebSocket-сервер и фоновые задачи."""
    logger.info(f"Starting server on ws://{host}:{port}")
    topic.ensure_dispatcher()
    pinger = asyncio.create_task(keep_alive(topic))
    try:
        async with serve(host, port):
            await asyncio.Future()
    except Exception as e:
        logger.critical(f"Server error: {e}", exc_info=True)
        raise
    finally:
        pinger.cancel()
        await topic.close()
