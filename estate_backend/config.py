"""
Configuration and settings for the listing backend.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Keys of a Google service-account document, in the order Firebase emits them.
SERVICE_ACCOUNT_FIELDS = (
    "type",
    "project_id",
    "private_key_id",
    "private_key",
    "client_email",
    "client_id",
    "auth_uri",
    "token_uri",
    "auth_provider_x509_cert_url",
    "client_x509_cert_url",
    "universe_domain",
)


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or unreadable."""


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    port: int = Field(default=3000)
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    uploads_dir: str = Field(default="uploads")

    # Firebase Realtime Database
    firebase_service_account_key: Optional[str] = Field(default=None)
    firebase_database_url: Optional[str] = Field(default=None)
    properties_path: str = Field(default="properties")

    # Service account split across variables, used when the JSON blob is unset.
    service_account_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("service_account_type", "type")
    )
    project_id: Optional[str] = Field(default=None)
    private_key_id: Optional[str] = Field(default=None)
    private_key: Optional[str] = Field(default=None)
    client_email: Optional[str] = Field(default=None)
    client_id: Optional[str] = Field(default=None)
    auth_uri: Optional[str] = Field(default=None)
    token_uri: Optional[str] = Field(default=None)
    auth_provider_x509_cert_url: Optional[str] = Field(default=None)
    client_x509_cert_url: Optional[str] = Field(default=None)
    universe_domain: Optional[str] = Field(default=None)

    # Vercel Blob
    v_store_id: Optional[str] = Field(default=None)
    v_token: Optional[str] = Field(default=None)
    blob_api_url: str = Field(default="https://blob.vercel-storage.com")

    # Mail (Gmail SMTP by default)
    user_email: Optional[str] = Field(default=None)
    user_password: Optional[str] = Field(default=None)
    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=465)
    smtp_use_tls: bool = Field(default=True)
    mail_from: Optional[str] = Field(default=None)
    contact_recipients: list[str] = Field(default_factory=list)

    # Tokens and OTP
    secret_token_key: Optional[str] = Field(default=None)
    token_expire_hours: int = Field(default=2)
    otp_ttl_seconds: Optional[int] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @property
    def sender(self) -> Optional[str]:
        return self.mail_from or self.user_email

    @property
    def recipients(self) -> list[str]:
        if self.contact_recipients:
            return list(self.contact_recipients)
        return [self.sender] if self.sender else []


@dataclass(frozen=True)
class FirebaseConfig:
    service_account: dict
    database_url: str


@dataclass(frozen=True)
class BlobStoreConfig:
    store_id: str
    token: str
    api_url: str


def _service_account_from_fields(settings: Settings) -> dict:
    account = {}
    for key in SERVICE_ACCOUNT_FIELDS:
        attr = "service_account_type" if key == "type" else key
        value = getattr(settings, attr)
        if value is not None:
            account[key] = value
    return account


def load_firebase_config(settings: Settings) -> FirebaseConfig:
    """
    Build the Firebase credential bundle.

    The service account comes from FIREBASE_SERVICE_ACCOUNT_KEY when set,
    otherwise from the individual service-account variables.
    """
    if settings.firebase_service_account_key:
        try:
            account = json.loads(settings.firebase_service_account_key)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                "FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON"
            ) from exc
        if not isinstance(account, dict):
            raise ConfigurationError(
                "FIREBASE_SERVICE_ACCOUNT_KEY must be a JSON object"
            )
    else:
        account = _service_account_from_fields(settings)

    if (
        not account.get("project_id")
        or not account.get("private_key")
        or not settings.firebase_database_url
    ):
        raise ConfigurationError("Firebase configuration is missing or incomplete.")

    # Keys pasted into env files usually carry escaped newlines.
    account["private_key"] = account["private_key"].replace("\\n", "\n")
    return FirebaseConfig(
        service_account=account, database_url=settings.firebase_database_url
    )


def load_blob_config(settings: Settings) -> BlobStoreConfig:
    if not settings.v_store_id or not settings.v_token:
        raise ConfigurationError(
            "Vercel Blob configuration is missing or incomplete."
        )
    return BlobStoreConfig(
        store_id=settings.v_store_id,
        token=settings.v_token,
        api_url=settings.blob_api_url.rstrip("/"),
    )


def load_signing_secret(settings: Settings) -> str:
    if not settings.secret_token_key:
        raise ConfigurationError("SECRET_TOKEN_KEY is not set.")
    return settings.secret_token_key


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
