"""
HTTP routes for the listing backend.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from estate_backend.auth import InvalidTokenError, OtpStore, TokenService
from estate_backend.config import Settings, get_settings
from estate_backend.db import DatabaseError
from estate_backend.dependencies import (
    authenticate,
    get_mail_transport,
    get_otp_store,
    get_property_repository,
    get_token_service,
)
from estate_backend.mailer import (
    MailDeliveryError,
    MailTransport,
    contact_message,
    otp_message,
)
from estate_backend.properties import (
    MissingImageError,
    PropertyNotFoundError,
    PropertyRepository,
)
from estate_backend.schemas import (
    MessageResponse,
    PropertyCreatedResponse,
    PropertyUpdatedResponse,
    TokenResponse,
)
from estate_backend.storage import UploadError

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"

router = APIRouter()

# Failures from the database or blob store surface as a generic 500.
UPSTREAM_ERRORS = (DatabaseError, UploadError)


def _form_fields(
    name: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    bedrooms: Optional[str] = Form(None),
    bathrooms: Optional[str] = Form(None),
    propertyType: Optional[str] = Form(None),
    period: Optional[str] = Form(None),
) -> dict:
    return {
        "name": name,
        "location": location,
        "description": description,
        "price": price,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms,
        "propertyType": propertyType,
        "period": period,
    }


async def _read_image(image: Optional[UploadFile]) -> tuple[Optional[bytes], Optional[str]]:
    if image is None:
        return None, None
    return await image.read(), image.filename


@router.post("/properties", response_model=PropertyCreatedResponse)
async def create_property(
    user: dict = Depends(authenticate),
    fields: dict = Depends(_form_fields),
    image: Optional[UploadFile] = File(None),
    repository: PropertyRepository = Depends(get_property_repository),
):
    image_bytes, image_name = await _read_image(image)
    try:
        record = await run_in_threadpool(
            repository.create, fields, image_bytes, image_name
        )
    except MissingImageError:
        raise HTTPException(status_code=400, detail="No image file was uploaded.")
    except UPSTREAM_ERRORS:
        logger.exception("Error adding property")
        raise HTTPException(status_code=500, detail="Failed to add the property.")
    return PropertyCreatedResponse(message="Property added successfully", property=record)


@router.get("/properties")
def list_properties(
    user: dict = Depends(authenticate),
    repository: PropertyRepository = Depends(get_property_repository),
):
    try:
        return repository.list()
    except UPSTREAM_ERRORS:
        logger.exception("Failed to fetch properties")
        raise HTTPException(status_code=500, detail="Failed to fetch properties.")


@router.get("/properties/{property_id}")
def get_property(
    property_id: str,
    user: dict = Depends(authenticate),
    repository: PropertyRepository = Depends(get_property_repository),
):
    """Absent ids yield ``null`` rather than 404."""
    try:
        return repository.get_by_id(property_id)
    except UPSTREAM_ERRORS:
        logger.exception("Failed to fetch property %s", property_id)
        raise HTTPException(status_code=500, detail="Failed to fetch property.")


@router.put("/properties/{property_id}", response_model=PropertyUpdatedResponse)
async def update_property(
    property_id: str,
    user: dict = Depends(authenticate),
    fields: dict = Depends(_form_fields),
    image: Optional[UploadFile] = File(None),
    repository: PropertyRepository = Depends(get_property_repository),
):
    image_bytes, image_name = await _read_image(image)
    try:
        updates = await run_in_threadpool(
            repository.update, property_id, fields, image_bytes, image_name
        )
    except UPSTREAM_ERRORS:
        logger.exception("Failed to update property %s", property_id)
        raise HTTPException(status_code=500, detail="Failed to update property.")
    return PropertyUpdatedResponse(
        message="Property updated successfully.", property=updates
    )


@router.delete("/properties/{property_id}", response_model=MessageResponse)
def delete_property(
    property_id: str,
    user: dict = Depends(authenticate),
    repository: PropertyRepository = Depends(get_property_repository),
):
    try:
        repository.delete(property_id)
    except PropertyNotFoundError:
        raise HTTPException(status_code=404, detail="Property not found.")
    except UPSTREAM_ERRORS:
        logger.exception("Failed to delete property %s", property_id)
        raise HTTPException(status_code=500, detail="Failed to delete property.")
    return MessageResponse(message="Property deleted successfully.")


async def _submitted_fields(request: Request) -> dict:
    """Read a JSON, urlencoded or multipart body; unreadable bodies are empty."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}
    try:
        form = await request.form()
    except StarletteHTTPException:
        return {}
    return {key: value for key, value in form.items() if isinstance(value, str)}


@router.post("/submit", response_class=FileResponse)
async def submit_contact_form(
    request: Request,
    transport: MailTransport = Depends(get_mail_transport),
    settings: Settings = Depends(get_settings),
):
    fields = await _submitted_fields(request)
    message = contact_message(fields, settings.sender, settings.recipients)
    try:
        await transport.send(message)
    except MailDeliveryError:
        logger.exception("Error sending contact email")
        return FileResponse(STATIC_DIR / "error.html")
    return FileResponse(STATIC_DIR / "success.html")


@router.post("/generate-otp", response_model=MessageResponse)
async def generate_otp(
    otps: OtpStore = Depends(get_otp_store),
    transport: MailTransport = Depends(get_mail_transport),
    settings: Settings = Depends(get_settings),
):
    if not settings.user_email:
        logger.error("USER_EMAIL is not set; cannot issue OTP")
        return JSONResponse(status_code=500, content={"message": "Failed to send OTP"})
    code = otps.issue(settings.user_email)
    try:
        await transport.send(otp_message(code, settings.sender, settings.user_email))
    except MailDeliveryError:
        logger.exception("Error sending OTP")
        return JSONResponse(status_code=500, content={"message": "Failed to send OTP"})
    return MessageResponse(message="OTP sent successfully")


@router.post("/verify-otp", response_model=TokenResponse)
async def verify_otp(
    request: Request,
    otps: OtpStore = Depends(get_otp_store),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    email = settings.user_email
    submitted = (await _submitted_fields(request)).get("otp")
    if not email or not otps.verify(email, submitted):
        return JSONResponse(status_code=401, content={"message": "Invalid OTP"})
    return TokenResponse(token=tokens.issue(email))


@router.post("/verify-token", response_model=MessageResponse)
async def verify_token(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
):
    try:
        tokens.verify((await _submitted_fields(request)).get("token"))
    except InvalidTokenError:
        return JSONResponse(status_code=401, content={"message": "Invalid token"})
    return MessageResponse(message="Token verified")
