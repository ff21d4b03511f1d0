"""WhatsApp messaging route handlers (staff)."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from academy.api.routes import limiter
from academy.services import whatsapp_service
from academy.api.auth_dependencies import require_staff
from academy.models.schemas import WhatsAppSendRequest, WhatsAppMatchAlertRequest, WhatsAppLinkRequest

logger = logging.getLogger(__name__)
router = APIRouter()


def _delivery_response(to: str, result: dict) -> dict:
    if result.get("error") == "invalid phone number":
        raise HTTPException(status_code=400, detail=f"Invalid phone number: {to}")
    return {"to": whatsapp_service.format_phone_number(to), **result}


@router.post("/api/whatsapp/send")
@limiter.limit("30/minute")
async def send_message(
    request: Request,
    payload: WhatsAppSendRequest,
    current_user: dict = Depends(require_staff),
):
    """
    Send a free-text WhatsApp message. When the Cloud API is not configured
    the message is logged and reported as skipped.
    """
    try:
        result = await whatsapp_service.send_message(payload.to, payload.message)
        return _delivery_response(payload.to, result)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending WhatsApp message: {e}")
        raise HTTPException(status_code=500, detail=f"Error sending WhatsApp message: {str(e)}")


@router.post("/api/whatsapp/match-alert")
@limiter.limit("30/minute")
async def send_match_alert(
    request: Request,
    payload: WhatsAppMatchAlertRequest,
    current_user: dict = Depends(require_staff),
):
    try:
        result = await whatsapp_service.send_match_alert(payload.to, payload.alert_type, payload.details)
        return _delivery_response(payload.to, result)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error sending match alert: {e}")
        raise HTTPException(status_code=500, detail=f"Error sending match alert: {str(e)}")


@router.post("/api/whatsapp/link")
async def click_to_chat_link(
    payload: WhatsAppLinkRequest,
    current_user: dict = Depends(require_staff),
):
    """wa.me click-to-chat link with an optional prefilled message."""
    phone = whatsapp_service.format_phone_number(payload.phone)
    if not whatsapp_service.is_valid_phone_number(phone):
        raise HTTPException(status_code=400, detail=f"Invalid phone number: {payload.phone}")
    return {"phone": phone, "url": whatsapp_service.build_click_to_chat_link(phone, payload.message)}
