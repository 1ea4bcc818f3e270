from typing import Dict, List, Optional, Type

from ..settings import settings
from .base import Gateway
from .checkout_v2.adapter import CheckoutV2Gateway
from .conekta.adapter import ConektaGateway
from .forte.adapter import ForteGateway
from .orbital.adapter import OrbitalGateway
from .payeezy.adapter import PayeezyGateway
from .payflow.adapter import PayflowGateway
from .paymentez.adapter import PaymentezGateway
from .pin.adapter import PinGateway

# Классы адаптеров: экземпляр создаётся с credentials на каждый вызов
_registry: Dict[str, Type[Gateway]] = {
    "checkout_v2": CheckoutV2Gateway,
    "conekta": ConektaGateway,
    "forte": ForteGateway,
    "orbital": OrbitalGateway,
    "payeezy": PayeezyGateway,
    "payflow": PayflowGateway,
    "paymentez": PaymentezGateway,
    "pin": PinGateway,
}

# Алиасы имён → канонические ключи реестра
_aliases = {
    # Checkout.com
    "checkout": "checkout_v2",
    "checkout.com": "checkout_v2",
    "checkout_com": "checkout_v2",

    # Payeezy / First Data
    "first_data": "payeezy",
    "firstdata": "payeezy",

    # Payflow
    "payflow_pro": "payflow",
    "paypal_payflow": "payflow",

    # Orbital
    "chase": "orbital",
    "paymentech": "orbital",
    "chase_paymentech": "orbital",

    # Pin
    "pin_payments": "pin",
    "pinpayments": "pin",
}


def _canonical(name: str) -> str:
    key = name.strip().lower()
    return _aliases.get(key, key)


def get_gateway_class(name: Optional[str]) -> Optional[Type[Gateway]]:
    if not name:
        return None
    return _registry.get(_canonical(name))


def get_gateway_by_name(name: Optional[str] = None, **credentials) -> Optional[Gateway]:
    cls = get_gateway_class(name or settings.DEFAULT_GATEWAY)
    if cls is None:
        return None
    return cls(**credentials)


def available_gateways() -> List[str]:
    return sorted(_registry)
