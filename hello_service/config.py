from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Empty values (e.g. PORT="") fall back to the defaults below.
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_ignore_empty=True)

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, ge=0, le=65535, alias="PORT")
    read_timeout: float = Field(default=15.0, gt=0, alias="READ_TIMEOUT")
    write_timeout: float = Field(default=15.0, gt=0, alias="WRITE_TIMEOUT")
    idle_timeout: float = Field(default=60.0, gt=0, alias="IDLE_TIMEOUT")
    shutdown_timeout: float = Field(default=30.0, gt=0, alias="SHUTDOWN_TIMEOUT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @property
    def bind_address(self) -> str:
        return f"{self.host}:{self.port}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
