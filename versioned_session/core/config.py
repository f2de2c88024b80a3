"""Session configuration using Pydantic settings."""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import TlsMode, TransactionErrorPolicy


class TlsConfig(BaseModel):
    """TLS trust configuration."""

    mode: TlsMode = TlsMode.NONE
    ca_file_path: Optional[str] = None

    @model_validator(mode="after")
    def check_ca_file(self) -> "TlsConfig":
        if self.mode == TlsMode.CA_FILE and not self.ca_file_path:
            raise ValueError("ca_file_path is required when TLS mode is 'ca-file'")
        return self


class ConnectionConfig(BaseModel):
    """Everything needed to open a pooled connection."""

    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str
    tls: TlsConfig = Field(default_factory=TlsConfig)

    # Pool settings
    pool_max_size: int = Field(default=7, ge=1)
    connect_timeout: Optional[int] = None
    echo: bool = False


class Settings(BaseSettings):
    """Settings read from the environment and .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str

    # TLS
    DB_SSL_MODE: TlsMode = TlsMode.NONE
    DB_SSL_CA: Optional[str] = None

    # Pool settings
    db_pool_max_size: int = 7
    db_connect_timeout: Optional[int] = None

    # Behaviour
    on_transaction_error: TransactionErrorPolicy = TransactionErrorPolicy.PROPAGATE
    log_level: str = "INFO"
    debug: bool = False

    def connection_config(self) -> ConnectionConfig:
        """Build the connection configuration."""
        mode = self.DB_SSL_MODE
        # A CA path on its own implies verification against it
        if self.DB_SSL_CA and mode == TlsMode.NONE:
            mode = TlsMode.CA_FILE

        return ConnectionConfig(
            host=self.DB_HOST,
            port=self.DB_PORT,
            user=self.DB_USER,
            password=self.DB_PASSWORD,
            database=self.DB_NAME,
            tls=TlsConfig(mode=mode, ca_file_path=self.DB_SSL_CA),
            pool_max_size=self.db_pool_max_size,
            connect_timeout=self.db_connect_timeout,
            echo=self.debug,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
