from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str  # required: no record store, no service
    data_dir: str = "./data"
    public_base_url: str = "http://localhost:8000"
    storage_backend: str = "local"  # "local" or "blob"
    blob_api_url: str = "https://blob.vercel-storage.com"
    blob_read_write_token: str = ""
    webhook_url: str = ""  # empty = notifications disabled
    webhook_token: str = ""
    webhook_timeout_seconds: float = 10.0
    max_image_size_bytes: int = 10 * 1024 * 1024  # 10MB
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator("storage_backend", mode="before")
    @classmethod
    def normalize_backend(cls, v: str | None) -> str:
        return (v or "local").strip().lower()

    @field_validator("blob_read_write_token", "webhook_token", mode="before")
    @classmethod
    def strip_token(cls, v: str | None) -> str:
        return (v or "").strip()


settings = Settings()
