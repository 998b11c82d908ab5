import json
import logging
import re
from typing import List, Optional, Sequence

from langchain_core.prompts import PromptTemplate
from pydantic import ValidationError as PydanticValidationError

from geniepay.core.errors import AIUnavailable
from geniepay.models.subscription import Subscription
from geniepay.schemas.ai import ChatTurn, Intent
from geniepay.services.ai_engine.text_generator import TextGenerator

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 4

# Commandes d'un seul mot, sans objet : on demande le nom avant d'appeler l'IA
AMBIGUOUS_COMMANDS = {
    "pause", "resume", "delete", "cancel", "stop", "activate", "unpause", "restart",
}

_NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

_THRESHOLD = re.compile(
    r"(?:₹|\brs\.?|\binr\b|\bunder\b|\babove\b|\bover\b|\bbelow\b|\bthan\b)\s*\d+(?:[.,]\d+)?"
)
_RANK_WORDS = r"(?:most|least|cheapest|lowest|highest|priciest|costliest|expensive|subscriptions|services|plans)"
# "top 3", "cheapest two"
_COUNT_AFTER_RANK = re.compile(r"\b(?:top|first|bottom|cheapest|lowest|highest|priciest|costliest)\s+(\w+)\b")
# "3 most expensive", "two cheapest"
_COUNT_BEFORE_RANK = re.compile(rf"\b(\w+)\s+{_RANK_WORDS}\b")


def _to_count(token: str) -> Optional[int]:
    if token.isdigit():
        return int(token) or None
    return _NUMBER_WORDS.get(token)

TEMPLATE = """
You are Genie, the AI assistant of GeniePay, a subscription management app (prices in INR, ₹).
Your job is to turn the user's message into ONE action on their subscriptions.

USER'S CURRENT SUBSCRIPTIONS:
{subscriptions}

RECENT CONVERSATION (oldest first):
{history}

USER MESSAGE:
{command}

AVAILABLE ACTIONS:
- "add": add one subscription. Needs "serviceName" and "price" (monthly, number).
- "bulkAdd": add several subscriptions. Put them in "subscriptions": [{{"name": "...", "price": 0}}].
- "delete": delete one subscription by "serviceName".
- "pause": pause one subscription by "serviceName".
- "resume": resume one paused subscription by "serviceName".
- "list": show subscriptions. "filter" is "active", "paused" or "all".
- "analytics": rank or total subscriptions by price.
    "analyticsType": "top" | "highest" | "most-expensive" | "lowest" | "cheapest" | "total".
    "filter": "active" | "paused" | "all".
    "limit": how many to return. Use 1 when the user speaks about a single subscription
    ("the cheapest one", "my most expensive subscription"), 5 for an unspecified plural.
    If the user also wants to act on the result ("resume the cheapest paused subscription"),
    set "bulkAction" to "pause", "resume" or "delete".
- "bulk": act on several subscriptions at once. "bulkAction" is "pause", "resume" or "delete".
    Target either explicit names as a comma separated "serviceName" ("Netflix, Spotify")
    or a "filter" ("active", "paused", "all") when the user says "all".
- "clarification": the request is ambiguous. Ask a short question in "response".
- "info": a general question or small talk. Answer it in "response".

RULES:
1. Use the conversation to resolve references like "it" or "that one".
2. Only use names of existing subscriptions for delete, pause, resume and bulk.
3. "response" is always a short, friendly confirmation written for the user.

OUTPUT FORMAT:
Reply ONLY with a JSON object, no text around it:
{{
  "action": "...",
  "serviceName": "...",
  "price": 0,
  "subscriptions": [],
  "filter": "all",
  "analyticsType": "...",
  "limit": 5,
  "bulkAction": "...",
  "response": "..."
}}
Omit the fields that do not apply.
"""

_PROMPT = PromptTemplate(
    template=TEMPLATE,
    input_variables=["subscriptions", "history", "command"],
)


def build_subscription_summary(subscriptions: Sequence[Subscription]) -> str:
    """Ligne de contexte envoyée à l'IA : "Netflix - ₹649.0 - Status: active, ..."."""
    if not subscriptions:
        return "None"
    return ", ".join(
        f"{s.service_name} - ₹{s.price} - Status: {getattr(s.status, 'value', s.status)}"
        for s in subscriptions
    )


def strip_code_fences(text: str) -> str:
    """Gemini encadre souvent le JSON dans un bloc ```json ... ```."""
    text = text.strip()
    text = re.sub(r"^```[a-zA-Z]*\s*", "", text)
    text = re.sub(r"\s*```$", "", text)
    return text.strip()


def ambiguous_command(utterance: str) -> Optional[str]:
    word = re.sub(r"[^a-z]", "", utterance.strip().lower())
    return word if word in AMBIGUOUS_COMMANDS else None


def infer_limit(utterance: str) -> Optional[int]:
    """
    Singulier -> 1, pluriel non chiffré -> 5, nombre explicite -> ce nombre.
    None quand le message ne permet pas de trancher.
    """
    # Les montants et seuils ("above 100", "₹199") ne sont jamais des quantités
    text = _THRESHOLD.sub(" ", utterance.lower())
    for pattern in (_COUNT_AFTER_RANK, _COUNT_BEFORE_RANK):
        for match in pattern.finditer(text):
            count = _to_count(match.group(1))
            if count:
                return count
    if re.search(r"\b(subscriptions|services|ones|plans)\b", text):
        return 5
    if re.search(r"\b(subscription|service|one|plan)\b", text) or re.search(r"\bthe (cheapest|lowest|highest|most expensive)\b", text):
        return 1
    return None


class IntentParser:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    def build_prompt(self, utterance: str, history: Sequence[ChatTurn], summary: str) -> str:
        window = list(history)[-HISTORY_WINDOW:]
        history_text = "\n".join(f"{turn.role}: {turn.content}" for turn in window) or "None"
        return _PROMPT.format(subscriptions=summary, history=history_text, command=utterance)

    def decode(self, raw: str, utterance: str = "") -> Intent:
        """
        Décodage structuré de la réponse. Si le texte n'est pas un JSON valide,
        on renvoie une intention "info" avec le texte brut (pas une erreur).
        Un JSON hors schéma devient "info" avec son seul champ "response" :
        le JSON brut n'est jamais montré à l'utilisateur.
        """
        try:
            data = json.loads(strip_code_fences(raw))
        except ValueError:
            logger.info("🧠 Réponse IA non structurée, repli sur 'info'")
            return Intent(action="info", response=raw)
        if not isinstance(data, dict):
            return Intent(action="info", response=raw)

        try:
            intent = Intent.model_validate(data)
        except PydanticValidationError as e:
            logger.info("🧠 Intention hors schéma (%d erreur(s)), repli sur 'info'", e.error_count())
            response = data.get("response")
            return Intent(action="info", response=response if isinstance(response, str) else "")

        if intent.action == "analytics" and intent.limit is None and intent.analytics_type != "total":
            intent.limit = infer_limit(utterance)
        return intent

    async def parse(
        self,
        utterance: str,
        history: Optional[List[ChatTurn]] = None,
        summary: str = "None",
    ) -> Intent:
        word = ambiguous_command(utterance)
        if word:
            return Intent(
                action="clarification",
                response=(
                    f"Which subscription would you like to {word}? "
                    f"Tell me the service name, for example \"{word} Netflix\"."
                ),
            )

        prompt = self.build_prompt(utterance, history or [], summary)
        try:
            raw = await self.generator.generate(prompt)
        except Exception as e:
            logger.error("❌ Erreur IA : %s", e)
            raise AIUnavailable(
                "AI service is unavailable right now. Please try again in a moment."
            ) from e

        if not isinstance(raw, str) or not raw.strip():
            raise AIUnavailable("AI service returned an empty response.")

        return self.decode(raw, utterance)
