"""
SMS service for login codes.

Sends the OTP through Twilio or the DVHosting gateway when one is configured,
and falls back to mock mode (log only) otherwise.

Provider order:
1. Twilio, when TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER are set
2. DVHosting, when DVHOSTING_API_KEY is set
3. Mock mode

Environment variables (see config.py):
- DVHOSTING_API_KEY
- TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN / TWILIO_PHONE_NUMBER
"""

import json
import logging
import re

import requests

from . import config
from .validators import to_e164

logger = logging.getLogger(__name__)


def is_twilio_configured() -> bool:
    """Check if Twilio is properly configured."""
    return all([config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN, config.TWILIO_PHONE_NUMBER])


def is_dvhosting_configured() -> bool:
    return bool(config.DVHOSTING_API_KEY)


def send_otp_sms(phone: str, otp: str) -> dict:
    """
    Send a login code to ``phone`` (10-digit national number).

    Returns:
        dict with "success" (bool), "mock" (bool), "provider" and, on
        failure, "error".
    """
    if is_twilio_configured():
        return _send_via_twilio(phone, otp)

    if is_dvhosting_configured():
        return _send_via_dvhosting(phone, otp)

    # Mock mode - the code itself only goes to DEBUG logs
    logger.info("MOCK SMS: OTP requested for %s (no SMS gateway configured)", phone)
    logger.debug("MOCK SMS to %s: code %s", phone, otp)
    return {
        "success": True,
        "mock": True,
        "provider": "mock",
        "message": "Simulation mode",
    }


def _send_via_twilio(phone: str, otp: str) -> dict:
    try:
        from twilio.rest import Client

        client = Client(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)
        normalized_phone = to_e164(phone)

        message = client.messages.create(
            body=f"Your CleanCare verification code is {otp}. It expires in {config.OTP_EXPIRY_MINUTES} minutes.",
            from_=config.TWILIO_PHONE_NUMBER,
            to=normalized_phone,
        )

        logger.info("OTP SMS sent to %s via Twilio (SID: %s)", normalized_phone, message.sid)
        return {
            "success": True,
            "mock": False,
            "provider": "twilio",
            "message_sid": message.sid,
        }

    except Exception as e:
        logger.error("Failed to send OTP SMS to %s via Twilio: %s", phone, str(e))
        return {
            "success": False,
            "mock": False,
            "provider": "twilio",
            "error": f"Failed to send SMS: {str(e)}",
        }


def _send_via_dvhosting(phone: str, otp: str) -> dict:
    params = {
        "authorization": config.DVHOSTING_API_KEY,
        "route": "otp",
        "variables_values": otp,
        "numbers": phone,
    }

    try:
        response = requests.get(
            config.DVHOSTING_URL,
            params=params,
            timeout=config.SMS_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error("DVHosting request failed for %s: %s", phone, e)
        return {
            "success": False,
            "mock": False,
            "provider": "dvhosting",
            "error": f"Failed to reach SMS gateway: {e}",
        }

    result = parse_dvhosting_response(response.text)
    if result["success"]:
        logger.info("OTP SMS sent to %s via DVHosting", phone)
    else:
        logger.warning("DVHosting rejected OTP SMS for %s: %s", phone, result.get("error"))
    result.update({"mock": False, "provider": "dvhosting"})
    return result


def parse_dvhosting_response(text: str) -> dict:
    """
    Interpret a DVHosting response body.

    The gateway answers with JSON carrying "return" or "success", but some
    error paths return plain text; a text body mentioning "success" counts
    as delivered.
    """
    if not text or not text.strip():
        return {"success": False, "error": "Empty response from DVHosting"}

    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        if re.search(r"success", text, re.IGNORECASE):
            return {"success": True}
        return {"success": False, "error": text.strip()}

    if isinstance(payload, dict) and (payload.get("return") or payload.get("success")):
        return {"success": True}

    message = payload.get("message") if isinstance(payload, dict) else None
    if isinstance(message, list):
        message = "; ".join(str(m) for m in message)
    return {"success": False, "error": message or "SMS gateway rejected the request"}
