"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from estate_backend.auth import InvalidTokenError, OtpStore, TokenService, parse_authorization
from estate_backend.config import (
    get_settings,
    load_blob_config,
    load_firebase_config,
    load_signing_secret,
)
from estate_backend.db import FirebasePropertyDb, InMemoryPropertyDb, PropertyDbClient
from estate_backend.mailer import InMemoryMailTransport, MailTransport, SmtpMailTransport
from estate_backend.properties import PropertyRepository
from estate_backend.storage import InMemoryStorageClient, StorageClient, VercelBlobStorageClient

logger = logging.getLogger(__name__)

_db_client: PropertyDbClient | None = None
_storage_client: StorageClient | None = None
_mail_transport: MailTransport | None = None
_token_service: TokenService | None = None
_otp_store: OtpStore | None = None


def get_db_client() -> PropertyDbClient:
    """
    Return a singleton database client.

    Raises ConfigurationError when Firebase credentials are incomplete.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _db_client = InMemoryPropertyDb()
    else:
        _db_client = FirebasePropertyDb(
            load_firebase_config(settings), path=settings.properties_path
        )
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = VercelBlobStorageClient(load_blob_config(settings))
    return _storage_client


def get_mail_transport() -> MailTransport:
    global _mail_transport
    if _mail_transport:
        return _mail_transport

    settings = get_settings()
    if settings.use_in_memory_backends:
        _mail_transport = InMemoryMailTransport()
    else:
        _mail_transport = SmtpMailTransport(
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.user_email,
            password=settings.user_password,
            use_tls=settings.smtp_use_tls,
        )
    return _mail_transport


def get_token_service() -> TokenService:
    global _token_service
    if _token_service:
        return _token_service

    settings = get_settings()
    _token_service = TokenService(
        load_signing_secret(settings), expire_hours=settings.token_expire_hours
    )
    return _token_service


def get_otp_store() -> OtpStore:
    global _otp_store
    if _otp_store:
        return _otp_store

    _otp_store = OtpStore(ttl_seconds=get_settings().otp_ttl_seconds)
    return _otp_store


def get_property_repository(
    db: PropertyDbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> PropertyRepository:
    return PropertyRepository(db, storage)


def reset_clients() -> None:
    """Drop every singleton so the next request rebuilds it from settings."""
    global _db_client, _storage_client, _mail_transport, _token_service, _otp_store
    _db_client = None
    _storage_client = None
    _mail_transport = None
    _token_service = None
    _otp_store = None


def authenticate(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    tokens: TokenService = Depends(get_token_service),
) -> dict:
    """
    Dependency guarding protected routes.

    The decoded payload is stored on ``request.state.user`` and returned.
    """
    try:
        payload = tokens.verify(parse_authorization(authorization))
    except InvalidTokenError as exc:
        logger.info("Rejected request to %s: %s", request.url.path, exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    request.state.user = payload
    return payload
