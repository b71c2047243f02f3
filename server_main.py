import asyncio
import logging

from server.chat_server import ChatServer
from shared.log import setup_logging
from shared.config import server_config


async def main():
    server = ChatServer(server_config.host, server_config.port)
    await server.init_server()

    try:
        await server.start_server()
    except asyncio.CancelledError:
        logging.getLogger(server_config.logger_name).info(
            "Server shutdown requested, stopping..."
        )
    except Exception as e:
        logging.getLogger(server_config.logger_name).error(
            f"Server encountered an error: {e}"
        )
    finally:
        await server.stop_server()


def run():
    server_logger = setup_logging(
        server_config.logger_name,
        console_handler_level=server_config.log_level,
    )
    server_logger.info("Starting chat server")
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        server_logger.info("Server interrupted by user (Ctrl+C).")
    finally:
        logging.shutdown()


if __name__ == "__main__":
    run()
