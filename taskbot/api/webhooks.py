"""
WhatsApp webhook - the single inbound entry point.

Verifies the gateway signature, unwraps the envelope and runs the message
through resolve -> dispatch -> send with a per-request DB session.
"""
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from taskbot.bot.commands import is_command, split_command
from taskbot.bot.dispatcher import CommandDispatcher, handle_message
from taskbot.bot.resolver import IntentResolver
from taskbot.config import Settings, get_settings
from taskbot.database import get_db
from taskbot.errors import PersistenceFailure, UpstreamUnavailable
from taskbot.services.cache import CacheStore, build_cache
from taskbot.services.claude_service import ClaudeService
from taskbot.services.conversation_memory import ConversationMemory
from taskbot.services.session_store import SessionStore
from taskbot.services.temp_store import TempStore
from taskbot.services.user_service import UserService
from taskbot.services.whatsapp_client import WhatsAppClient
from taskbot.utils.logger import mask_phone

router = APIRouter()
logger = logging.getLogger(__name__)

NOT_REGISTERED = "❌ User not registered. Please contact admin."
SIGNATURE_HEADER = "X-Hub-Signature-256"


class BotServices:
    """Process-wide clients, built once and shared by every request"""

    def __init__(
        self,
        settings: Settings,
        cache: CacheStore,
        classifier: ClaudeService,
        whatsapp: WhatsAppClient,
    ):
        self.settings = settings
        self.cache = cache
        self.classifier = classifier
        self.whatsapp = whatsapp
        self.memory = ConversationMemory(
            cache,
            limit=settings.CHAT_HISTORY_LIMIT,
            ttl_seconds=settings.CHAT_HISTORY_TTL_SECONDS,
        )
        self.temp = TempStore(cache)
        self.sessions = SessionStore(cache, settings.SESSION_TTL_SECONDS)

    @classmethod
    def from_settings(cls, settings: Settings) -> "BotServices":
        return cls(
            settings=settings,
            cache=build_cache(settings.REDIS_URL),
            classifier=ClaudeService(settings),
            whatsapp=WhatsAppClient(settings),
        )

    def resolver(self) -> IntentResolver:
        return IntentResolver(self.classifier, self.memory, timeout=self.settings.CLASSIFIER_TIMEOUT_SECONDS)

    def dispatcher(self, db: AsyncSession) -> CommandDispatcher:
        return CommandDispatcher(
            db,
            self.memory,
            cache=self.cache,
            progress_ttl=self.settings.TASK_PROGRESS_CACHE_TTL_SECONDS,
        )


def get_bot_services(request: Request) -> BotServices:
    services = getattr(request.app.state, "bot", None)
    if services is None:
        services = BotServices.from_settings(get_settings())
        request.app.state.bot = services
    return services


class InboundMessage(BaseModel):
    sender: str
    text: str
    message_id: Optional[str] = None


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """HMAC-SHA256 of the raw body, hex encoded, optional 'sha256=' prefix"""
    if not signature:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    received = signature.replace("sha256=", "", 1).strip()
    return hmac.compare_digest(expected, received)


def extract_message(payload: Dict[str, Any]) -> Optional[InboundMessage]:
    """
    Pull sender and text out of the gateway envelope.

    Event and action envelopes (acks, group changes, edits, revokes) carry
    no command and return None.
    """
    if isinstance(payload.get("event"), str):
        logger.info(f"WhatsApp event: {payload['event']}")
        return None
    if isinstance(payload.get("action"), str):
        logger.info(f"WhatsApp action: {payload['action']}")
        return None

    message = payload.get("message")
    if not isinstance(message, dict):
        return None
    text = message.get("text")
    sender = payload.get("sender_id") or payload.get("from")
    if not isinstance(text, str) or not isinstance(sender, str) or not sender:
        return None
    message_id = message.get("id")
    return InboundMessage(
        sender=sender,
        text=text,
        message_id=str(message_id) if message_id else None,
    )


async def _reply(whatsapp: WhatsAppClient, recipient: str, text: str) -> bool:
    try:
        await whatsapp.send_text(recipient, text)
        return True
    except UpstreamUnavailable as e:
        logger.error(f"Failed to send WhatsApp reply to {mask_phone(recipient)}: {e}")
        return False


async def _record_session(sessions: SessionStore, inbound: InboundMessage, user_id: int) -> None:
    command = split_command(inbound.text)[0] if is_command(inbound.text) else ""
    try:
        await sessions.touch(inbound.sender, user_id, inbound.sender, command)
    except PersistenceFailure as e:
        logger.warning(f"Session update failed for {mask_phone(inbound.sender)}: {e}")


@router.post("/whatsapp/webhook")
async def whatsapp_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    bot: BotServices = Depends(get_bot_services),
):
    body = await request.body()

    secret = bot.settings.WHATSAPP_WEBHOOK_SECRET
    if secret and not verify_signature(body, request.headers.get(SIGNATURE_HEADER), secret):
        logger.warning("WhatsApp webhook signature verification failed")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    inbound = extract_message(payload)
    if inbound is None:
        return {"status": "ignored"}

    if inbound.message_id:
        try:
            fresh = await bot.temp.claim(f"wa_message:{inbound.message_id}", bot.settings.MESSAGE_DEDUP_TTL_SECONDS)
        except PersistenceFailure as e:
            logger.warning(f"Dedup check failed for {inbound.message_id}: {e}")
            fresh = True
        if not fresh:
            logger.info(f"Duplicate WhatsApp message {inbound.message_id} ignored")
            return {"status": "duplicate"}

    user = await UserService(db).get_by_whatsapp_number(inbound.sender)
    if not user:
        logger.info(f"Message from unregistered sender {mask_phone(inbound.sender)}")
        delivered = await _reply(bot.whatsapp, inbound.sender, NOT_REGISTERED)
        return {"status": "unregistered", "delivered": delivered}

    await _record_session(bot.sessions, inbound, user.id)
    reply = await handle_message(bot.resolver(), bot.dispatcher(db), user, inbound.text)
    delivered = await _reply(bot.whatsapp, inbound.sender, reply)
    return {"status": "processed", "reply": reply, "delivered": delivered}
