"""Application configuration."""
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "File Proxy"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    # URL signing
    url_signer_secret_key: str = "file-proxy-url-signer-key-change-in-production"
    default_url_expiry_seconds: int = 300

    # Signatures accepted before expiring stay usable for this long after last use
    signature_cache_grace_seconds: int = 60
    signature_cache_purge_interval_seconds: int = 60

    # Paths behind the pre-signed URL filter
    protected_path_prefixes: List[str] = ["/files"]

    # Directory served under /files
    local_files_root: str = "./data"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def get_secret_key(self) -> str:
        """Return the shared secret used to sign and verify URLs."""
        return self.url_signer_secret_key


settings = Settings()
