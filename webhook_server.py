"""Webhook server - Messenger webhook, USOS account linking, broadcasts and Studia3 login pages."""
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from fastapi import BackgroundTasks, FastAPI, Form, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from pydantic import BaseModel

from messenger_bot.config import Config
from messenger_bot.errors import OAuthError, TransportError
from messenger_bot.main import MessengerBot, configure_logging
from messenger_bot.messaging.templates import parse_broadcast
from messenger_bot.services.usos_oauth import TokenPair
from messenger_bot.utils.datetime_utils import utcnow_naive
from messenger_bot.utils.html_pages import studia3_login_page
from messenger_bot.utils.webhook_auth import WebhookAuthError, verify_payload_signature, verify_subscription

# Don't configure logging here - it's configured in messenger_bot/main.py
logger = logging.getLogger(__name__)


class _BroadcastPayload(BaseModel):
    text: str
    admin_id: Optional[int] = None


def _with_query(url: str, **params) -> str:
    """Append query parameters to a URL that may already carry some."""
    parts = urlsplit(url)
    extra = urlencode(params)
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def create_app(config: Optional[Config] = None, bot: Optional[MessengerBot] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Route paths come from the config. A prebuilt bot can be passed in (tests);
    otherwise one is created and started in the lifespan.
    """
    config = config or Config.from_env()
    configure_logging(config)
    messenger_bot = bot or MessengerBot(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown."""
        logger.info("🚀 Starting Webhook Server...")
        await messenger_bot.start()
        if not config.app_secret:
            logger.warning("⚠️ APP_SECRET not set - webhook payload signatures are NOT validated!")
        yield
        logger.info("🛑 Shutting down Webhook Server...")
        await messenger_bot.stop()

    app = FastAPI(
        lifespan=lifespan,
        title="USOS Messenger Bot",
        description="Messenger bot linked with USOS accounts",
        version="1.0.0",
    )
    app.state.bot = messenger_bot
    app.state.config = config

    def container():
        return messenger_bot.container

    @app.get(config.webhook_path)
    async def verify_webhook(request: Request):
        """Subscription handshake: echo `hub.challenge` when the verify token matches."""
        try:
            challenge = verify_subscription(dict(request.query_params), verify_token=config.verify_token)
        except KeyError:
            return PlainTextResponse("Invalid request", status_code=400)
        except WebhookAuthError:
            logger.warning("⚠️ Rejected webhook verification: token mismatch")
            return PlainTextResponse("Forbidden", status_code=403)

        logger.info("Webhook verified")
        return PlainTextResponse(challenge)

    @app.post(config.webhook_path)
    async def webhook_handler(request: Request, background_tasks: BackgroundTasks):
        """
        Handle incoming webhook deliveries from Messenger.

        Entries are processed after the response is sent, so the platform gets
        its acknowledgement without waiting for replies or database writes.
        """
        raw = await request.body()
        if config.app_secret:
            try:
                verify_payload_signature(raw, request.headers.get("X-Hub-Signature-256"), app_secret=config.app_secret)
            except WebhookAuthError as e:
                logger.warning(f"⚠️ Rejected webhook request: {e}")
                return Response(status_code=401)

        try:
            body = json.loads(raw or b"{}")
        except ValueError:
            return Response(status_code=400)

        if not isinstance(body, dict) or body.get("object") != "page":
            return Response(status_code=404)

        entries = body.get("entry") or []
        if not isinstance(entries, list):
            entries = []
        logger.info(f"Webhook delivery with {len(entries)} entries")
        for entry in entries:
            background_tasks.add_task(messenger_bot.process_entry, entry)

        return PlainTextResponse("EVENT_RECEIVED")

    @app.get(config.register_path)
    async def register(account_linking_token: str = "", redirect_uri: str = ""):
        """Account-link button target: start the USOS OAuth handshake."""
        if not account_linking_token or not redirect_uri:
            return PlainTextResponse("Invalid request", status_code=400)

        services = container()
        try:
            psid = await services.messenger_client.get_psid_for_linking_token(account_linking_token)
            if not psid:
                logger.error("Messenger linking token expired")
                return RedirectResponse(redirect_uri, status_code=302)

            user = await services.user_service.get_or_create(psid, services.messenger_client.get_user_profile)
            logger.debug(f"Registering user {user.id}")

            request_token = await services.usos_client.request_token(config.oauth_callback_url)
            await services.login_flow_service.start(
                user_id=user.id,
                linking_token=account_linking_token,
                callback_url=redirect_uri,
                oauth_token=request_token.key,
                oauth_secret=request_token.secret,
            )
        except TransportError as e:
            logger.error(f"Failed to start USOS login: {e}")
            return RedirectResponse(redirect_uri, status_code=302)

        logger.debug(f"Got USOS tokens, redirecting to authorize for user {user.id}")
        return RedirectResponse(services.usos_client.authorize_url(request_token.key), status_code=302)

    @app.get(config.oauth_callback_path)
    async def usos_callback(oauth_token: str = "", oauth_verifier: str = ""):
        """USOS redirects here after the user authorized the request token."""
        services = container()
        flow = await services.login_flow_service.get_by_oauth_token(oauth_token) if oauth_token else None
        if flow is None:
            return PlainTextResponse("Login attempt not found or expired", status_code=404)

        logger.debug(f"Received USOS token callback for user {flow.user_id}")
        try:
            access = await services.usos_client.access_token(
                TokenPair(key=flow.usos_oauth_token, secret=flow.usos_oauth_secret),
                oauth_verifier,
            )
        except OAuthError as e:
            logger.error(f"USOS access token exchange failed for user {flow.user_id}: {e}")
            return PlainTextResponse("USOS login failed", status_code=502)

        await services.user_service.set_usos_tokens(flow.user_id, access.key, access.secret)
        logger.debug(f"Registered successfully user_id - {flow.user_id}")
        return RedirectResponse(
            _with_query(flow.messenger_callback_url, authorization_code=flow.messenger_auth_code),
            status_code=302,
        )

    @app.post(config.broadcast_path)
    async def trigger_broadcast(payload: _BroadcastPayload, request: Request):
        """Internal broadcast trigger; only reachable from the same host (no proxy header)."""
        if request.headers.get("X-Forwarded-For"):
            return Response(status_code=403)

        template = parse_broadcast(payload.text)
        if template is None:
            return JSONResponse({"error": "missing or unknown @target"}, status_code=400)
        if not template.body.strip():
            return JSONResponse({"error": "broadcast text is empty"}, status_code=400)

        services = container()
        admin = None
        if payload.admin_id is not None:
            admin = await services.user_service.get_by_id(payload.admin_id)
            if admin is None:
                return JSONResponse({"error": "admin not found"}, status_code=404)

        services.broadcast_service.start(template, admin=admin)
        return JSONResponse({"status": "queued", "target": template.target.label}, status_code=202)

    @app.get(config.studia3_login_path, response_class=HTMLResponse)
    async def studia3_sessions():
        sessions = await container().studia3_service.list_sessions()
        return HTMLResponse(studia3_login_page(sessions, utcnow_naive()))

    @app.post(config.studia3_login_path, response_class=HTMLResponse)
    async def studia3_login(program_id: int = Form(...), username: str = Form(""), password: str = Form("")):
        services = container()
        try:
            ok = await services.studia3_service.login(program_id, username, password)
            status = "Logged in." if ok else "Login failed."
        except TransportError as e:
            logger.error(f"Studia3 login error: {e}")
            status = "Studia3 is unreachable."

        sessions = await services.studia3_service.list_sessions()
        return HTMLResponse(studia3_login_page(sessions, utcnow_naive(), status=status))

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint.

        Returns the health status of the bot and its components.
        """
        payload = {"status": "ok", "running": messenger_bot.running}
        if messenger_bot.container is not None:
            payload["database_ok"] = await messenger_bot.container.db.health_check()
        return payload

    return app
