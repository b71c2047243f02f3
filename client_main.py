import asyncio
import logging

from shared.log import setup_logging
from client.chat_session_manager import ChatSessionManager
from client.chat_renderer import ChatRenderer
from shared.config import client_config


async def main() -> int:
    server_address = (client_config.host, client_config.port)

    session_manager = ChatSessionManager()
    renderer = ChatRenderer()
    if not await session_manager.init_session(server_address, renderer):
        print(f"Could not connect: {session_manager.client.get_last_error()}")
        return 1
    return 0


def run():
    # Console output would corrupt the full-screen UI, so only errors go there.
    logger = setup_logging(
        client_config.logger_name,
        file_handler_level=client_config.log_level,
        console_handler_level=logging.ERROR,
    )
    logger.info("Starting client application")
    exit_code = 0
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Client interrupted by user (Ctrl+C). Shutting down cleanly.")
        print("\nDisconnected. Goodbye!")
    finally:
        logging.shutdown()
    raise SystemExit(exit_code)


if __name__ == "__main__":
    run()
