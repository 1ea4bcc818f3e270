from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

# Унифицированные коды ошибок, в которые адаптеры переводят коды процессингов
STANDARD_ERROR_CODE = {
    "incorrect_number": "incorrect_number",
    "invalid_number": "invalid_number",
    "invalid_expiry_date": "invalid_expiry_date",
    "invalid_cvc": "invalid_cvc",
    "expired_card": "expired_card",
    "incorrect_cvc": "incorrect_cvc",
    "incorrect_zip": "incorrect_zip",
    "incorrect_address": "incorrect_address",
    "incorrect_pin": "incorrect_pin",
    "card_declined": "card_declined",
    "processing_error": "processing_error",
    "call_issuer": "call_issuer",
    "pickup_card": "pickup_card",
    "config_error": "config_error",
    "test_mode_live_card": "test_mode_live_card",
    "unsupported_feature": "unsupported_feature",
    "invalid_amount": "invalid_amount",
}


class AVSResult:
    """
    Address Verification System. Ответ процессинга сводится к коду,
    из которого выводятся street_match / postal_match.
    """

    MESSAGES = {
        "A": "Street address matches, but postal code does not match.",
        "B": "Street address matches, but postal code not verified.",
        "C": "Street address and postal code do not match.",
        "D": "Street address and postal code match.",
        "E": "AVS data is invalid or AVS is not allowed for this card type.",
        "F": "Card member's name does not match, but billing postal code matches.",
        "G": "Non-U.S. issuing bank does not support AVS.",
        "H": "Card member's name does not match. Street address and postal code match.",
        "I": "Address not verified.",
        "J": "Card member's name, billing address, and postal code match. Shipping information verified and chargeback protection guaranteed through the Fraud Protection Program.",
        "K": "Card member's name matches but billing address and billing postal code do not match.",
        "L": "Card member's name and billing postal code match, but billing address does not match.",
        "M": "Street address and postal code match.",
        "N": "Street address and postal code do not match.",
        "O": "Card member's name and billing address match, but billing postal code does not match.",
        "P": "Postal code matches, but street address not verified.",
        "Q": "Card member's name, billing address, and postal code match. Shipping information verified but chargeback protection not guaranteed.",
        "R": "System unavailable.",
        "S": "U.S.-issuing bank does not support AVS.",
        "T": "Card member's name does not match, but street address matches.",
        "U": "Address information unavailable.",
        "V": "Card member's name, billing address, and billing postal code match.",
        "W": "Street address does not match, but 9-digit postal code matches.",
        "X": "Street address and 9-digit postal code match.",
        "Y": "Street address and 5-digit postal code match.",
        "Z": "Street address does not match, but 5-digit postal code matches.",
    }

    POSTAL_MATCH_CODE = {
        "Y": "DHFJLMPQVWXYZ",
        "N": "ACKNO",
        "X": "GS",
    }

    STREET_MATCH_CODE = {
        "Y": "ABDHJMOQTVXY",
        "N": "CKLNWZ",
        "X": "GS",
    }

    def __init__(self, code: Optional[str] = None, street_match: Optional[str] = None,
                 postal_match: Optional[str] = None, message: Optional[str] = None):
        self.code = code.upper() if code else None
        self.message = message or self.MESSAGES.get(self.code)
        self.street_match = street_match.upper() if street_match else self._lookup(self.STREET_MATCH_CODE)
        self.postal_match = postal_match.upper() if postal_match else self._lookup(self.POSTAL_MATCH_CODE)

    def _lookup(self, table: Dict[str, str]) -> Optional[str]:
        if not self.code:
            return None
        for match, codes in table.items():
            if self.code in codes:
                return match
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "street_match": self.street_match,
            "postal_match": self.postal_match,
        }


class CVVResult:
    MESSAGES = {
        "D": "CVV check flagged transaction as suspicious",
        "I": "CVV failed data validation check",
        "M": "CVV matches",
        "N": "CVV does not match",
        "P": "CVV not processed",
        "S": "CVV should have been present",
        "U": "CVV request unable to be processed by issuer",
        "X": "Card does not support CVV",
    }

    def __init__(self, code: Optional[str] = None):
        self.code = code.upper() if code else None
        self.message = self.MESSAGES.get(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class Response(BaseModel):
    success: bool
    message: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict)
    authorization: Optional[str] = None
    test: bool = False
    fraud_review: bool = False
    error_code: Optional[str] = None
    emv_authorization: Optional[str] = None
    network_transaction_id: Optional[str] = None
    avs_result: Dict[str, Any] = Field(default_factory=lambda: AVSResult().to_dict())
    cvv_result: Dict[str, Any] = Field(default_factory=lambda: CVVResult().to_dict())

    @property
    def is_success(self) -> bool:
        return self.success

    @field_validator("avs_result", mode="before")
    @classmethod
    def _avs(cls, v: Any) -> Dict[str, Any]:
        # dict с атрибутами ({"code": "Y"}) или готовый AVSResult
        if isinstance(v, AVSResult):
            return v.to_dict()
        return AVSResult(**(v or {})).to_dict()

    @field_validator("cvv_result", mode="before")
    @classmethod
    def _cvv(cls, v: Any) -> Dict[str, Any]:
        if isinstance(v, CVVResult):
            return v.to_dict()
        if isinstance(v, dict):
            return CVVResult(v.get("code")).to_dict()
        return CVVResult(v).to_dict()


class MultiResponse:
    """
    Цепочка запросов (например verify = authorize + void).
    Останавливается на первом неуспешном шаге; ignore_result-шаги
    не влияют на итог.
    """

    def __init__(self, use_first_response: bool = False):
        self.responses: List[Any] = []
        self.primary_response: Optional[Any] = None
        self._use_first_response = use_first_response

    def process(self, step: Callable[[], Any], ignore_result: bool = False):
        if not self.success:
            return None
        response = step()
        self.responses.append(response)
        if not ignore_result:
            if self._use_first_response and response.success:
                self.primary_response = self.primary_response or response
            else:
                self.primary_response = response
        return response

    @property
    def success(self) -> bool:
        return self.primary_response.success if self.primary_response is not None else True

    @property
    def is_success(self) -> bool:
        return self.success

    def __getattr__(self, name: str):
        # message, params, authorization, avs_result ... берём у primary_response
        if name.startswith("_") or name in ("responses", "primary_response"):
            raise AttributeError(name)
        return getattr(self.primary_response, name)
