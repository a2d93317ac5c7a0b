# civreg/core/config.py
import json
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # === MongoDB ===
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "civreg"
    mongo_tls: bool = False

    # === Tokens issued by the external auth provider ===
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # === Citizen submissions ===
    submit_rate_limit: str = "20/minute"
    rate_limit_enabled: bool = True

    # === CORS ===
    # JSON (["http://a","https://b"]) or comma separated ("http://a,https://b")
    cors_origins: str = ""

    # === Pagination ===
    max_page_size: int = 100

    # === Logging ===
    log_level: str = "INFO"

    # === REST client ===
    api_base_url: str = "http://localhost:8000"
    api_token: str = ""
    http_timeout_seconds: float = 15.0

    @property
    def cors_origin_list(self) -> List[str]:
        s = (self.cors_origins or "").strip()
        if not s:
            return []
        if s.startswith("["):
            try:
                data = json.loads(s)
                if isinstance(data, list):
                    return [str(x).strip() for x in data if str(x).strip()]
            except ValueError:
                # malformed JSON falls back to the comma split
                pass
        return [item.strip() for item in s.split(",") if item.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global instance used by main.py, the services and the client
settings = Settings()
