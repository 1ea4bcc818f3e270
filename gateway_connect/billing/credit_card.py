import re
from typing import Any, ClassVar, Optional
from pydantic import BaseModel, field_validator, model_validator

# Порядок важен: первый совпавший бренд побеждает
CARD_COMPANY_DETECTORS = [
    ("visa", re.compile(r"^4\d{12}(\d{3})?(\d{3})?$")),
    ("master", re.compile(r"^(5[1-5]\d{4}|677189|222[1-9]\d{2}|22[3-9]\d{3}|2[3-6]\d{4}|27[01]\d{3}|2720\d{2})\d{10}$")),
    ("discover", re.compile(r"^(6011|65\d{2}|64[4-9]\d)\d{12,15}$")),
    ("american_express", re.compile(r"^3[47]\d{13}$")),
    ("diners_club", re.compile(r"^3(0[0-5]|[689]\d)\d{11,16}$")),
    ("jcb", re.compile(r"^(35(28|29|[3-8]\d)\d{12}|308800\d{10})$")),
    ("maestro", re.compile(r"^(5018|5020|5038|5893|6304|6759|676[1-3]|0604|6390)\d{8,15}$")),
    ("carnet", re.compile(r"^(506(199|2[0-4]\d|3\d{2}|4[0-2]\d)|639484|639559)\d{10}$")),
]


def brand_for(number: Optional[str]) -> Optional[str]:
    digits = re.sub(r"\D", "", number or "")
    for brand, pattern in CARD_COMPANY_DETECTORS:
        if pattern.match(digits):
            return brand
    return None


class CreditCard(BaseModel):
    number: str
    month: Optional[int] = None
    year: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    verification_value: Optional[str] = None
    brand: Optional[str] = None

    @field_validator("number", "verification_value", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return None if v is None else str(v)

    @model_validator(mode="after")
    def _detect_brand(self):
        if not self.brand:
            self.brand = brand_for(self.number)
        return self

    @property
    def name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def expiry_date(self) -> str:
        """MM/YY"""
        return f"{self.month:02d}/{str(self.year)[-2:]}"

    def credit_card(self) -> bool:
        return True

    def type(self) -> str:
        return "credit_card"


class NetworkTokenizationCreditCard(CreditCard):
    """
    Токенизированная карта (Apple Pay / Google Pay / network token).
    CVV и имя для кошельков не обязательны.
    """

    SOURCES: ClassVar[tuple] = ("apple_pay", "android_pay", "google_pay", "network_token")

    payment_cryptogram: Optional[str] = None
    eci: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_data: Optional[dict] = None
    metadata: Optional[dict] = None
    source: str = "apple_pay"

    @field_validator("eci", mode="before")
    @classmethod
    def _stringify_eci(cls, v: Any) -> Any:
        return None if v is None else str(v)

    @field_validator("source", mode="before")
    @classmethod
    def _known_source(cls, v: Any) -> str:
        v = str(v) if v is not None else ""
        return v if v in cls.SOURCES else "apple_pay"

    def network_token(self) -> bool:
        return self.source == "network_token"

    def mobile_wallet(self) -> bool:
        return self.source in ("apple_pay", "android_pay", "google_pay")

    def encrypted_wallet(self) -> bool:
        return bool(self.payment_data)

    def type(self) -> str:
        return "network_tokenization"
