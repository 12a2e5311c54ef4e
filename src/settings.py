# src/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    database_url: str = "sqlite:///./esign.db"

    # Local file storage (signed PDFs and uploads)
    upload_dir: str = "uploads"
    public_file_base_url: str = "http://localhost:8000/files"

    # Base URL of the public verification page; links look like {base}/verify/{signature_id}
    verification_url: str = "http://localhost:5173"

    # PIN verification gate
    pin_max_attempts: int = 3
    pin_lockout_minutes: int = 30
    access_code_length: int = 6

    # Daily premium expiry downgrade (00:05)
    premium_expiry_hour: int = 0
    premium_expiry_minute: int = 5
    enable_scheduler: bool = True

    log_level: str = "INFO"

    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
        description="Comma-separated list of CORS origins",
    )

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


settings = Settings()
