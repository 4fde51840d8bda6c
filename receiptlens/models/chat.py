"""Assistant conversation models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from receiptlens.models.expense import new_record_id


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatActionType(str, Enum):
    """Actions the assistant may propose alongside a reply."""
    SET_BUDGET = "SET_BUDGET"
    NAVIGATE = "NAVIGATE"
    CREATE_EXPENSE = "CREATE_EXPENSE"


class ChatAction(BaseModel):
    """
    A proposed action. The user must accept it before anything is
    written to the ledger or the budget registry.
    """
    type: ChatActionType
    category: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    merchant: Optional[str] = None
    date: Optional[str] = None
    target: Optional[str] = Field(
        default=None,
        pattern="^(dashboard|scan)$"
    )


class ChatMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_record_id)
    role: ChatRole
    content: str
    is_actionable: bool = False
    action_data: Optional[ChatAction] = None
    suggestions: Optional[list[str]] = None
