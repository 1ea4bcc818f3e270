from typing import Any, Dict
from .response import Response


class PaypalExpressResponse(Response):
    @property
    def email(self):
        return self.info.get("Payer")

    @property
    def info(self) -> Dict[str, Any]:
        return self.params.get("PayerInfo") or {}

    @property
    def details(self) -> Dict[str, Any]:
        return self.params.get("PaymentDetails") or {}

    @property
    def checkout_status(self):
        return self.params.get("CheckoutStatus") or {}

    @property
    def name(self) -> str:
        payer = self.info.get("PayerName") or {}
        return " ".join(p for p in (payer.get("FirstName"), payer.get("MiddleName"), payer.get("LastName")) if p is not None)

    @property
    def token(self):
        return self.params.get("Token")

    @property
    def payer_id(self):
        return self.info.get("PayerID")

    @property
    def payer_country(self):
        return self.info.get("PayerCountry")

    # PayPal отдаёт телефон, только если профиль мерчанта требует его ввода
    @property
    def contact_phone(self):
        return self.params.get("ContactPhone")

    @property
    def address(self) -> Dict[str, Any]:
        address = self.details.get("ShipToAddress") or {}
        return {
            "name": address.get("Name"),
            "company": self.info.get("PayerBusiness"),
            "address1": address.get("Street1"),
            "address2": address.get("Street2"),
            "city": address.get("CityName"),
            "state": address.get("StateOrProvince"),
            "country": address.get("Country"),
            "zip": address.get("PostalCode"),
            "phone": self.contact_phone or address.get("Phone"),
        }

    @property
    def shipping(self) -> Dict[str, Any]:
        shipping = self.params.get("UserSelectedOptions") or {}
        return {
            "amount": shipping.get("ShippingOptionAmount"),
            "name": shipping.get("ShippingOptionName"),
        }

    @property
    def note(self):
        return self.params.get("note_text")
