from contextlib import contextmanager
from datetime import date
from typing import Any, Iterable, List, Tuple
from unittest.mock import patch

import pytest

from gateway_connect.billing.check import Check
from gateway_connect.billing.credit_card import CreditCard, NetworkTokenizationCreditCard
from gateway_connect.gateways.base import Gateway

NEXT_YEAR = date.today().year + 1


def credit_card(number: str = "4242424242424242", **overrides: Any) -> CreditCard:
    attrs = {
        "number": number,
        "month": 9,
        "year": NEXT_YEAR,
        "first_name": "Longbob",
        "last_name": "Longsen",
        "verification_value": "123",
    }
    attrs.update(overrides)
    return CreditCard(**attrs)


def network_tokenization_credit_card(number: str = "4242424242424242", **overrides: Any) -> NetworkTokenizationCreditCard:
    attrs = {
        "number": number,
        "month": 9,
        "year": NEXT_YEAR,
        "first_name": "Longbob",
        "last_name": "Longsen",
        "verification_value": "123",
        "payment_cryptogram": "EHuWW9PiBkWvqE5juRwDzAUFBAk=",
        "eci": "05",
    }
    attrs.update(overrides)
    return NetworkTokenizationCreditCard(**attrs)


def check(**overrides: Any) -> Check:
    attrs = {
        "name": "Jim Smith",
        "bank_name": "Bank of Elbonia",
        "routing_number": "244183602",
        "account_number": "15378535",
        "account_holder_type": "personal",
        "account_type": "checking",
        "number": "1",
    }
    attrs.update(overrides)
    return Check(**attrs)


def address(**overrides: Any) -> dict:
    attrs = {
        "name": "Jim Smith",
        "address1": "456 My Street",
        "address2": "Apt 1",
        "company": "Widgets Inc",
        "city": "Ottawa",
        "state": "ON",
        "zip": "K1C2N6",
        "country": "CA",
        "phone": "(555)555-5555",
        "fax": "(555)555-6666",
    }
    attrs.update(overrides)
    return attrs


class StubbedComms:
    """Записанные вызовы ssl_request: (method, url, data, headers)."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Any, dict]] = []

    @property
    def last(self) -> Tuple[str, str, Any, dict]:
        return self.calls[-1]

    @property
    def data(self) -> Any:
        return self.last[2]

    @property
    def headers(self) -> dict:
        return self.last[3]


@contextmanager
def stub_comms(gateway: Gateway, responses: Iterable[Any]):
    """
    Подменяет ssl_request у конкретного адаптера. Каждый элемент responses -
    тело ответа (str) или исключение, которое нужно поднять.
    """
    queue = list(responses)
    recorder = StubbedComms()

    def fake(method, url, data=None, headers=None, retry=False):
        recorder.calls.append((method, url, data, headers or {}))
        result = queue.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result

    with patch.object(gateway, "ssl_request", side_effect=fake):
        yield recorder


@pytest.fixture
def card() -> CreditCard:
    return credit_card()


@pytest.fixture
def declined_card() -> CreditCard:
    return credit_card("4000300011112220")


@pytest.fixture
def network_token() -> NetworkTokenizationCreditCard:
    return network_tokenization_credit_card()


@pytest.fixture
def bank_check() -> Check:
    return check()


@pytest.fixture
def billing_address() -> dict:
    return address()
