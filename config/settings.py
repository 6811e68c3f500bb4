"""
Application Configuration Module
Handles all configuration settings for the Frame Proxy service
"""

from pydantic_settings import BaseSettings
from typing import Optional, List, Dict
from functools import lru_cache


class Settings(BaseSettings):
    """Main application settings"""

    # Application Settings
    app_name: str = "Frame Proxy"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4
    reload: bool = False

    # Security Settings
    cors_origins: List[str] = ["*"]
    cors_allow_credentials: bool = False
    cors_allow_methods: List[str] = ["GET", "POST", "OPTIONS"]
    cors_allow_headers: List[str] = ["authorization", "x-client-info", "apikey", "content-type"]

    # Logging Configuration
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/app.log"
    log_rotation: str = "100 MB"
    log_retention: str = "30 days"
    log_format: str = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"

    # Upstream Fetch
    request_timeout: float = 20.0  # seconds
    browser_headers: Dict[str, str] = {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        "Accept": (
            "text/html,application/xhtml+xml,application/xml;q=0.9,"
            "image/avif,image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
        "Sec-Ch-Ua": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": '"Windows"',
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }
    # Host pattern -> header overrides; a None value drops the header
    header_overrides: Dict[str, Dict[str, Optional[str]]] = {
        "reddit.com": {
            "User-Agent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) "
                "Gecko/20100101 Firefox/121.0"
            ),
            "Sec-Ch-Ua": None,
            "Sec-Ch-Ua-Mobile": None,
            "Sec-Ch-Ua-Platform": None,
        },
        "tiktok.com": {
            "Referer": "https://www.tiktok.com/",
        },
    }

    # Fallback Policy
    cors_relay_enabled: bool = True
    cors_relay_url: str = "https://api.allorigins.win/get?url="
    placeholder_hosts: List[str] = ["tiktok.com"]

    # Content Rewriting
    site_profiles_enabled: bool = True
    shadow_global_prefix: str = "__fp_"

    # Navigation Relay / WebSocket
    relay_dedupe_window: float = 1.0  # seconds
    ws_heartbeat_interval: int = 30
    ws_ping_timeout: int = 120

    # Performance Settings
    enable_compression: bool = True
    min_compression_size: int = 1024  # bytes

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

        # Allow extra fields for flexibility
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
