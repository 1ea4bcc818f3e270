from typing import Any, Optional
from pydantic import BaseModel, field_validator


class Check(BaseModel):
    """Банковский счёт для ACH / eCheck."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None
    routing_number: str
    account_number: str
    account_holder_type: Optional[str] = "personal"
    account_type: Optional[str] = "checking"
    number: Optional[str] = None
    bank_name: Optional[str] = None

    @field_validator("routing_number", "account_number", "number", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return None if v is None else str(v)

    def model_post_init(self, __context: Any) -> None:
        # name "Jim Smith" -> first/last, если они не заданы явно
        if self.name and not (self.first_name or self.last_name):
            parts = self.name.strip().split(" ")
            self.first_name = " ".join(parts[:-1]) or parts[-1]
            self.last_name = parts[-1] if len(parts) > 1 else None
        if not self.name:
            self.name = " ".join(p for p in (self.first_name, self.last_name) if p) or None

    def credit_card(self) -> bool:
        return False

    def type(self) -> str:
        return "check"
