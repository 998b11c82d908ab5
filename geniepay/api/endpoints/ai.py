import logging
from typing import Annotated, Any, Dict, Optional
from uuid import UUID
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from geniepay.api import deps
from geniepay.core.errors import AIUnavailable, GeniePayError, ValidationError
from geniepay.schemas.ai import CommandRequest, Intent
from geniepay.services.ai_engine.intent_parser import IntentParser, build_subscription_summary
from geniepay.services.commands.dispatcher import CommandDispatcher
from geniepay.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

router = APIRouter()

def _execute(dispatcher: CommandDispatcher, intent: Intent, owner_id: UUID) -> Dict[str, Any]:
    return dispatcher.dispatch(intent, owner_id).to_response()

@router.post("/command")
async def ai_command(
    request: CommandRequest,
    current_user: deps.CurrentUser,
    store: Annotated[SubscriptionStore, Depends(deps.get_store)],
    dispatcher: Annotated[CommandDispatcher, Depends(deps.get_dispatcher)],
    parser: Annotated[Optional[IntentParser], Depends(deps.get_intent_parser)],
):
    """
    Texte libre -> intention (Gemini) -> actions sur les abonnements.
    Chaque échec renvoie quand même un message lisible dans "response".
    """
    command = request.command.strip()
    owner_id = current_user.id
    if not command:
        raise ValidationError("Command is required")

    try:
        if parser is None:
            raise AIUnavailable("AI service not configured")
        # Contexte pour l'IA : l'état actuel des abonnements
        subs = await run_in_threadpool(store.list_by_owner, owner_id)
        intent = await parser.parse(command, request.conversation_history, build_subscription_summary(subs))
        # Écritures et sérialisation (lectures ORM) hors de la boucle
        body = await run_in_threadpool(_execute, dispatcher, intent, owner_id)
    except GeniePayError as e:
        logger.error("❌ AI command error (%s): %s", e.__class__.__name__, e.message)
        return JSONResponse(
            status_code=e.status_code,
            content={
                "error": e.message,
                "response": e.message if e.status_code != 500
                else "Sorry, I encountered an error processing your request.",
            },
        )

    logger.info("🤖 Commande '%s' exécutée pour %s", body["action"], owner_id)
    return body
