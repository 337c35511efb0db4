import logging
import os

MAX_MESSAGE_SIZE = 1024 * 1024
# websockets закрывает соединение (1009) на кадрах больше этого размера
MAX_FRAME_SIZE = int(os.getenv('ROOMCHAT_MAX_FRAME_SIZE', 4 * MAX_MESSAGE_SIZE))
MAX_QUEUE_SIZE = int(os.getenv('ROOMCHAT_MAX_QUEUE_SIZE', 200))
SERVER_HOST = os.getenv('ROOMCHAT_HOST', '0.0.0.0')
SERVER_PORT = int(os.getenv('ROOMCHAT_PORT', 8080))
KEEP_ALIVE_INTERVAL = float(os.getenv('ROOMCHAT_KEEP_ALIVE', 30))
DEFAULT_ROOM = os.getenv('ROOMCHAT_DEFAULT_ROOM', 'general')
LOG_FILE = os.getenv('ROOMCHAT_LOG_FILE', 'roomchat.log')

REGISTER_MESSAGE = (
    "Register your username with the following command:\n"
    "/name <username>"
)

HELP_TEXT = (
    "Commands:\n"
    " /help             - Show this text\n"
    " /room             - Change to default/entry room\n"
    " /room <room name> - Change to specified room\n"
    " /rooms            - List all rooms\n"
    " /members          - List members in current room"
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOG_FILE, encoding='utf-8'),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger('roomchat')
