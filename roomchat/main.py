import argparse
import asyncio

from roomchat.config import SERVER_HOST, SERVER_PORT, logger
from roomchat.server import start_server


def main():
    ap = argparse.ArgumentParser(description="Room-based websocket chat server")
    ap.add_argument("--host", default=SERVER_HOST)
    ap.add_argument("--port", type=int, default=SERVER_PORT)
    args = ap.parse_args()

    try:
        asyncio.run(start_server(args.host, args.port))
    except KeyboardInterrupt:
        logger.info("Server stopped")
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)


if __name__ == "__main__":
    main()
