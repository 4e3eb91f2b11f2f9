"""
Intent resolver - raw chat text to a typed intent.

Local slash commands short-circuit; everything else goes through the external
classifier with the caller's recent conversation turns. Any classifier
failure falls back to deterministic local rules and never raises.
"""
import asyncio
import json
import logging
import re
from typing import Dict, List

from taskbot.bot.commands import LOCAL_COMMANDS, is_command, parse_command, split_command
from taskbot.bot.intents import (
    SOURCE_FALLBACK,
    SOURCE_LOCAL,
    BaseIntent,
    CreateOrder,
    CreateTask,
    General,
    OrderLine,
    from_classifier,
)
from taskbot.bot.prompts import CLASSIFIER_SYSTEM_PROMPT, GENERAL_FALLBACK_MESSAGE
from taskbot.errors import EmptyInput, PersistenceFailure, UpstreamUnavailable
from taskbot.models.user import User
from taskbot.services.claude_service import ClaudeService, parse_json_response
from taskbot.services.conversation_memory import ConversationMemory

logger = logging.getLogger(__name__)

TOTAL_RE = re.compile(r"total[:\s]*(\d+(?:\.\d+)?)", re.IGNORECASE)
CUSTOMER_RE = re.compile(r"customer[:\s]*([a-zA-Z\s]+)", re.IGNORECASE)
ITEM_RE = re.compile(r"([a-zA-Z\s]+),\s*qty\s*(\d+)\s*x\s*(\d+(?:\.\d+)?)", re.IGNORECASE)
# "order <name> <amount>" as in "buat order John Doe 1000000"
ORDER_NAME_AMOUNT_RE = re.compile(r"order\s+([^\d]+?)\s+(\d+(?:\.\d+)?)\s*$", re.IGNORECASE)


def extract_order(text: str) -> CreateOrder:
    customer_name = ""
    total_amount = 0.0

    match = TOTAL_RE.search(text)
    if match:
        total_amount = float(match.group(1))
    match = CUSTOMER_RE.search(text)
    if match:
        customer_name = match.group(1).strip()

    if not customer_name:
        match = ORDER_NAME_AMOUNT_RE.search(text.strip())
        if match:
            customer_name = match.group(1).strip()
            if not total_amount:
                total_amount = float(match.group(2))

    items = [
        OrderLine(item_name=name.strip(), quantity=int(qty), price=float(price))
        for name, qty, price in ITEM_RE.findall(text)
    ]
    return CreateOrder(
        source=SOURCE_FALLBACK,
        customer_name=customer_name,
        total_amount=total_amount,
        items=items,
    )


def extract_task(text: str) -> CreateTask:
    words = text.split()
    return CreateTask(
        source=SOURCE_FALLBACK,
        title=words[0] if words else "",
        description=" ".join(words[1:]) or None,
    )


def fallback_classify(text: str) -> BaseIntent:
    """
    Deterministic classification used when the classifier is unavailable.

    Known slash commands parse from the local table; otherwise order
    detection runs before task detection, and anything else is general.
    """
    if is_command(text):
        intent = parse_command(text, SOURCE_FALLBACK)
        if intent is not None:
            return intent

    lowered = text.lower()
    if "order" in lowered or "total" in lowered:
        return extract_order(text)
    if "task" in lowered or "create" in lowered:
        return extract_task(text)
    return General(source=SOURCE_FALLBACK, message=GENERAL_FALLBACK_MESSAGE)


class IntentResolver:
    def __init__(self, classifier: ClaudeService, memory: ConversationMemory, timeout: float = 30.0):
        self.classifier = classifier
        self.memory = memory
        self.timeout = timeout

    async def resolve(self, raw_text: str, caller: User) -> BaseIntent:
        text = (raw_text or "").strip()
        if not text:
            raise EmptyInput()

        if is_command(text) and split_command(text)[0] in LOCAL_COMMANDS:
            return parse_command(text, SOURCE_LOCAL)

        return await self._classify(text, caller)

    async def _classify(self, text: str, caller: User) -> BaseIntent:
        history = await self._history(caller.id)
        await self._remember(caller.id, "user", text)

        messages = history + [{"role": "user", "content": text}]
        try:
            raw = await asyncio.wait_for(
                self.classifier.classify(CLASSIFIER_SYSTEM_PROMPT, messages),
                timeout=self.timeout,
            )
        except UpstreamUnavailable as e:
            logger.warning(f"Classifier unavailable, using local rules: {e}")
            return fallback_classify(text)
        except asyncio.TimeoutError:
            logger.warning(f"Classifier timed out after {self.timeout}s, using local rules")
            return fallback_classify(text)
        except Exception as e:
            logger.error(f"Classifier call failed, using local rules: {e}")
            return fallback_classify(text)

        await self._remember(caller.id, "assistant", raw)

        try:
            payload = parse_json_response(raw)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Unparsable classifier response, using local rules: {e}")
            return fallback_classify(text)

        intent = from_classifier(payload)
        logger.debug(f"Classified '{text[:50]}' as {intent.type}")
        return intent

    async def _history(self, user_id) -> List[Dict[str, str]]:
        """Prior turns oldest first, starting at the first user turn"""
        try:
            turns = await self.memory.read(user_id)
        except PersistenceFailure as e:
            logger.warning(f"Could not read conversation history for {user_id}: {e}")
            return []
        messages = [{"role": t.role, "content": t.content} for t in turns]
        while messages and messages[0]["role"] != "user":
            messages.pop(0)
        return messages

    async def _remember(self, user_id, role: str, text: str) -> None:
        try:
            await self.memory.append(user_id, role, text)
        except PersistenceFailure as e:
            logger.warning(f"Could not save {role} turn for {user_id}: {e}")
