from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 1300
    log_level: str = "INFO"
    logger_name: str = "chat_server"

    model_config = SettingsConfigDict(
        env_prefix="CHAT_SERVER_", env_file=".env", extra="ignore"
    )


class ClientConfig(BaseSettings):
    host: str = "localhost"
    port: int = 1300
    connect_timeout: float | None = 10.0
    read_limit: int = 2**16
    log_level: str = "INFO"
    logger_name: str = "chat_client"

    model_config = SettingsConfigDict(
        env_prefix="CHAT_CLIENT_", env_file=".env", extra="ignore"
    )


# Global instances (singleton pattern)
server_config = ServerConfig()
client_config = ClientConfig()

SERVER_LOGGER_NAME = server_config.logger_name
CLIENT_LOGGER_NAME = client_config.logger_name
