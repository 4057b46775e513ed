"""Messenger webhook request validation helpers."""

from __future__ import annotations

import hashlib
import hmac


class WebhookAuthError(RuntimeError):
    pass


def verify_subscription(params: dict, *, verify_token: str) -> str:
    """
    Validate a webhook subscription handshake and return the challenge to echo.

    Raises:
        WebhookAuthError: the mode is not `subscribe` or the token does not match
        KeyError: a `hub.*` parameter is missing
    """
    mode = params["hub.mode"]
    token = params["hub.verify_token"]
    challenge = params["hub.challenge"]

    if mode != "subscribe" or not hmac.compare_digest(str(token), str(verify_token)):
        raise WebhookAuthError("verify token mismatch")
    return str(challenge)


def verify_payload_signature(body: bytes, signature_header: str | None, *, app_secret: str) -> None:
    """
    Check `X-Hub-Signature-256` against the raw request body.

    Notes:
    - header format is "sha256=<hex digest>"
    - digest = HMAC_SHA256(key=app_secret, msg=raw body)
    """
    if not signature_header:
        raise WebhookAuthError("signature header is missing")

    algorithm, _, provided = signature_header.partition("=")
    if algorithm.lower() != "sha256" or not provided:
        raise WebhookAuthError("signature header is invalid")

    calculated = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(calculated, provided.lower()):
        raise WebhookAuthError("signature mismatch")
