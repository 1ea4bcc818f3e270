import pytest

from gateway_connect.gateways.checkout_v2.adapter import CheckoutV2Gateway
from gateway_connect.gateways.orbital.adapter import OrbitalGateway
from gateway_connect.gateways.payeezy.adapter import PayeezyGateway
from gateway_connect.gateways.pin.adapter import PinGateway
from gateway_connect.gateways.registry import available_gateways, get_gateway_by_name, get_gateway_class
from gateway_connect.settings import settings


class TestRegistry:
    def test_available_gateways(self):
        assert available_gateways() == [
            "checkout_v2", "conekta", "forte", "orbital", "payeezy", "payflow", "paymentez", "pin",
        ]

    @pytest.mark.parametrize("name, cls", [
        ("pin", PinGateway),
        ("Pin_Payments", PinGateway),
        (" checkout ", CheckoutV2Gateway),
        ("chase", OrbitalGateway),
        ("first_data", PayeezyGateway),
    ])
    def test_aliases(self, name, cls):
        assert get_gateway_class(name) is cls

    def test_unknown_name(self):
        assert get_gateway_class("braintree") is None
        assert get_gateway_class(None) is None
        assert get_gateway_by_name("braintree", api_key="x") is None

    def test_builds_instance_with_credentials(self):
        gateway = get_gateway_by_name("pin", api_key="secret")
        assert isinstance(gateway, PinGateway)
        assert gateway.options["api_key"] == "secret"

    def test_default_gateway_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "DEFAULT_GATEWAY", "pin")
        assert isinstance(get_gateway_by_name(api_key="secret"), PinGateway)

    def test_missing_credentials_raise(self, monkeypatch):
        monkeypatch.setattr(settings, "ORBITAL_LOGIN", None)
        with pytest.raises(ValueError, match="login"):
            get_gateway_by_name("orbital", password="x", merchant_id="1")
