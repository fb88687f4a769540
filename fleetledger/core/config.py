"""Configuration loaded from the environment (and an optional ``.env`` file).

Every section exposes ``from_env`` so tests can build one piece in isolation;
:func:`get_settings` caches the assembled :class:`Settings` for the process.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

INSECURE_SECRET = "change-me"
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _text(name: str, default: str) -> str:
    return os.getenv(name, default)


def _number(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in _FALSE_VALUES


@dataclass(slots=True)
class DatabaseSettings:
    """Where the MySQL (or, via ``DATABASE_URL``, any SQLAlchemy) database lives."""

    driver: str
    host: str
    port: int
    user: str
    password: str
    name: str
    url_override: str | None = None

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        return cls(
            driver=_text("DB_DRIVER", "mysql+pymysql"),
            host=_text("DB_HOST", "127.0.0.1"),
            port=_number("DB_PORT", 3306),
            user=_text("DB_USER", "fleetledger"),
            password=_text("DB_PASSWORD", "fleetledger"),
            name=_text("DB_NAME", "fleetledger"),
            url_override=os.getenv("DATABASE_URL") or None,
        )

    def _url(self, secret: str) -> str:
        login = f"{self.user}:{secret}" if secret else self.user
        return f"{self.driver}://{login}@{self.host}:{self.port}/{self.name}"

    @property
    def sqlalchemy_url(self) -> str:
        return self.url_override or self._url(self.password)

    @property
    def masked_url(self) -> str:
        """URL safe to log: credentials are dropped or starred out."""

        if self.url_override:
            return self.url_override.rsplit("@", 1)[-1]
        return self._url("***" if self.password else "")


@dataclass(slots=True)
class AuthSettings:
    secret_key: str
    algorithm: str
    access_token_expire_minutes: int
    cookie_name: str = "access_token"
    cookie_secure: bool = False

    @classmethod
    def from_env(cls) -> "AuthSettings":
        return cls(
            secret_key=_text("JWT_SECRET_KEY", INSECURE_SECRET),
            algorithm=_text("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=_number("JWT_EXPIRE_MINUTES", 120),
            cookie_name=_text("AUTH_COOKIE_NAME", "access_token"),
            cookie_secure=_flag("AUTH_COOKIE_SECURE"),
        )


@dataclass(slots=True)
class InvoiceSettings:
    # false: a payment larger than the remaining balance is rejected
    allow_overpayment: bool = False

    @classmethod
    def from_env(cls) -> "InvoiceSettings":
        return cls(allow_overpayment=_flag("INVOICE_ALLOW_OVERPAYMENT"))


@dataclass(slots=True)
class Settings:
    database: DatabaseSettings
    auth: AuthSettings
    invoices: InvoiceSettings
    sqlalchemy_echo: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database=DatabaseSettings.from_env(),
            auth=AuthSettings.from_env(),
            invoices=InvoiceSettings.from_env(),
            sqlalchemy_echo=_flag("SQLALCHEMY_ECHO"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings.from_env()

    # logger imports are deferred so config stays importable on its own
    from .logger import get_logger

    logger = get_logger(__name__)
    logger.debug(
        "Loaded settings: database=%s echo=%s token_ttl=%sm overpayment=%s",
        settings.database.masked_url,
        settings.sqlalchemy_echo,
        settings.auth.access_token_expire_minutes,
        settings.invoices.allow_overpayment,
    )
    if settings.auth.secret_key == INSECURE_SECRET:
        logger.warning("JWT_SECRET_KEY is not set; tokens are signed with the insecure default")
    return settings
