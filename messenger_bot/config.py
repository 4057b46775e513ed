"""Configuration loader for the bot with validation."""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env(*names: str, default: str = "") -> str:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


def _path(value: str) -> str:
    value = (value or "").strip()
    if not value.startswith("/"):
        value = "/" + value
    return value


@dataclass
class Config:
    """
    Bot configuration from environment variables.

    All settings are validated on load to fail fast if misconfigured.
    """

    # Messenger platform
    page_access_token: str
    verify_token: str
    app_secret: str = ""
    page_id: Optional[str] = None
    graph_api_url: str = "https://graph.facebook.com/v5.0"

    # USOS OAuth
    usos_key: str = ""
    usos_secret: str = ""
    usos_api_url: str = "https://apps.usos.pw.edu.pl/services"
    usos_scopes: str = "grades|offline_access|studies|crstests"

    # Public address and routes
    bot_domain: str = "localhost"
    bot_proxy_dir: str = ""
    webhook_path: str = "/webhook"
    register_path: str = "/register"
    oauth_callback_path: str = "/usos/callback"
    broadcast_path: str = "/internal/broadcast"
    studia3_login_path: str = "/studia3/login"

    # Server
    port: int = 8083
    ssl_cert_key: Optional[str] = None
    ssl_cert_cert: Optional[str] = None
    ssl_cert_pass: Optional[str] = None

    # Behavior
    broadcast_send_interval: float = 0.25  # seconds between broadcast sends
    login_flow_ttl_seconds: int = 3600
    db_auto_create: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = "bot.log"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.broadcast_send_interval < 0.05:
            raise ValueError("BROADCAST_SEND_INTERVAL must be at least 0.05 seconds")

        if self.login_flow_ttl_seconds < 60:
            raise ValueError("LOGIN_FLOW_TTL_SECONDS must be at least 60 seconds")

        if not 0 < self.port < 65536:
            raise ValueError("PORT must be between 1 and 65535")

        for name in ("webhook_path", "register_path", "oauth_callback_path", "broadcast_path", "studia3_login_path"):
            setattr(self, name, _path(getattr(self, name)))

    @classmethod
    def from_env(cls) -> "Config":
        """
        Load configuration from environment variables.

        Raises:
            RuntimeError: If required environment variables are missing
            ValueError: If configuration values are invalid
        """
        page_access_token = _env("PAGE_ACCESS_TOKEN", "MSG_TOKEN")
        if not page_access_token:
            raise RuntimeError("PAGE_ACCESS_TOKEN environment variable is required")

        verify_token = _env("VERIFY_TOKEN", "MSG_VERIFY_TOKEN")
        if not verify_token:
            raise RuntimeError("VERIFY_TOKEN environment variable is required")

        return cls(
            page_access_token=page_access_token,
            verify_token=verify_token,
            app_secret=_env("APP_SECRET"),
            page_id=_env("PAGE_ID") or None,
            graph_api_url=_env("GRAPH_API_URL", default="https://graph.facebook.com/v5.0"),
            usos_key=_env("USOS_KEY"),
            usos_secret=_env("USOS_SECRET"),
            usos_api_url=_env("USOS_API_URL", default="https://apps.usos.pw.edu.pl/services"),
            bot_domain=_env("BOT_DOMAIN", default="localhost"),
            bot_proxy_dir=_env("BOT_PROXY_DIR"),
            webhook_path=_env("BOT_WEBHOOK_PATH", default="/webhook"),
            register_path=_env("BOT_REGISTER_PATH", default="/register"),
            oauth_callback_path=_env("BOT_USOS_OAUTH_CALLBACK_PATH", default="/usos/callback"),
            broadcast_path=_env("BOT_BROADCAST_PATH", default="/internal/broadcast"),
            studia3_login_path=_env("STUDIA3_LOGIN_PATH", default="/studia3/login"),
            port=int(_env("PORT", default="8083")),
            ssl_cert_key=_env("SSL_CERT_KEY") or None,
            ssl_cert_cert=_env("SSL_CERT_CERT") or None,
            ssl_cert_pass=_env("SSL_CERT_PASS") or None,
            broadcast_send_interval=float(_env("BROADCAST_SEND_INTERVAL", default="0.25")),
            login_flow_ttl_seconds=int(_env("LOGIN_FLOW_TTL_SECONDS", default="3600")),
            db_auto_create=_env("DB_AUTO_CREATE", default="false").lower() == "true",
            log_level=_env("LOG_LEVEL", default="INFO").upper(),
            log_file=_env("LOG_FILE", default="bot.log") or None,
        )

    @property
    def base_url(self) -> str:
        """Public https origin including the reverse-proxy prefix."""
        return f"https://{self.bot_domain}{self.bot_proxy_dir.rstrip('/')}"

    @property
    def register_url(self) -> str:
        return self.base_url + self.register_path

    @property
    def oauth_callback_url(self) -> str:
        return self.base_url + self.oauth_callback_path

    @property
    def ssl_enabled(self) -> bool:
        return bool(self.ssl_cert_key and self.ssl_cert_cert)
