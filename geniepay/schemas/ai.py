import re
from typing import Any, List, Literal, Optional, get_args
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from geniepay.schemas.common import CamelModel

Action = Literal[
    "add", "bulkAdd", "delete", "pause", "resume", "list",
    "analytics", "bulk", "clarification", "info",
]
Filter = Literal["active", "paused", "all"]
AnalyticsType = Literal["top", "highest", "lowest", "cheapest", "most-expensive", "total"]
BulkAction = Literal["pause", "resume", "delete"]

ACTIONS = get_args(Action)

# Variantes d'écriture rencontrées dans les réponses du modèle
_ACTION_ALIASES = {a.lower(): a for a in ACTIONS}
_ACTION_ALIASES.update({"remove": "delete", "cancel": "delete", "unpause": "resume"})

_ENUM_ALIASES = {
    "bulk_action": {"cancel": "delete", "remove": "delete", "unpause": "resume"},
    "filter": {"inactive": "paused", "everything": "all"},
    "analytics_type": {
        "expensive": "most-expensive", "priciest": "most-expensive",
        "least-expensive": "cheapest", "sum": "total",
    },
}

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def _to_number(value: Any) -> Optional[float]:
    """Gemini renvoie parfois "₹649" ou "649.00" au lieu d'un nombre."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER_RE.search(str(value).replace(",", ""))
    return float(match.group()) if match else None


# Ce que le front envoie au chat
class ChatTurn(BaseModel):
    role: str
    content: str

class CommandRequest(CamelModel):
    command: str = ""
    conversation_history: List[ChatTurn] = Field(default_factory=list)


class BulkAddItem(BaseModel):
    name: str
    price: Optional[float] = None

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v):
        return _to_number(v)


# L'intention décodée depuis la réponse de l'IA
class Intent(CamelModel):
    action: Action
    service_name: Optional[str] = None
    price: Optional[float] = None
    subscriptions: List[BulkAddItem] = Field(default_factory=list)
    filter: Optional[Filter] = None
    analytics_type: Optional[AnalyticsType] = None
    limit: Optional[int] = None
    bulk_action: Optional[BulkAction] = None
    response: str = ""

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v):
        if not isinstance(v, str):
            return v
        key = v.strip().replace("_", "").replace("-", "").lower()
        return _ACTION_ALIASES.get(key, v.strip())

    @field_validator("response", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else str(v)

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v):
        return _to_number(v)

    @field_validator("limit", mode="before")
    @classmethod
    def coerce_limit(cls, v):
        number = _to_number(v)
        if number is None or number < 1:
            return None
        return int(number)

    @field_validator("filter", "analytics_type", "bulk_action", mode="before")
    @classmethod
    def lower_enum(cls, v, info: ValidationInfo):
        if isinstance(v, str):
            v = v.strip().lower().replace("_", "-").replace(" ", "-")
            return _ENUM_ALIASES[info.field_name].get(v, v) or None
        return v

    @field_validator("subscriptions", mode="before")
    @classmethod
    def none_to_list(cls, v):
        return v or []
