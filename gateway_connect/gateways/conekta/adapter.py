from typing import Dict, Any, Optional
import json
import re
import httpx

from ..base import Gateway
from ...settings import settings
from ...billing.errors import ResponseError
from ...billing.response import Response
from ...utils.http import to_query
from ...utils.security import basic_auth


class ConektaGateway(Gateway):
    """
    Conekta (MX), form-encoded:
      - POST charges                 (purchase / authorize с capture=false)
      - POST charges/{id}/capture
      - POST charges/{id}/refund
      - POST charges/{id}/void
    authorization = id заряда
    """

    name = "conekta"
    display_name = "Conekta Gateway"
    homepage_url = "https://conekta.io/"
    live_url = "https://api.conekta.io/"

    supported_countries = ("MX",)
    supported_cardtypes = ("visa", "master", "american_express", "carnet")
    money_format = "cents"
    default_currency = "MXN"

    settings_credentials = {"key": "CONEKTA_KEY"}

    def __init__(self, **options):
        super().__init__(**options)
        self.requires(self.options, "key")
        self.options.setdefault("version", "1.0.0")

    # ---- Adapter API ----
    def purchase(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_order(post, money, options)
        self._add_payment_source(post, payment, options)
        self._add_details_data(post, options)
        return self._commit("POST", "charges", post, options)

    def authorize(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_order(post, money, options)
        self._add_payment_source(post, payment, options)
        self._add_details_data(post, options)
        post["capture"] = False
        return self._commit("POST", "charges", post, options)

    def capture(self, money: int, identifier: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {"order_id": identifier}
        self._add_order(post, money, options)
        return self._commit("POST", f"charges/{identifier}/capture", post, options)

    def refund(self, money: int, identifier: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {"order_id": identifier}
        self._add_order(post, money, options)
        return self._commit("POST", f"charges/{identifier}/refund", post, options)

    def void(self, identifier: str, options: Optional[Dict[str, Any]] = None) -> Response:
        return self._commit("POST", f"charges/{identifier}/void", {}, options or {})

    def supports_scrubbing(self) -> bool:
        return True

    def scrub(self, transcript: str) -> str:
        transcript = re.sub(r"(Authorization: Basic )\w+", r"\1[FILTERED]", transcript)
        transcript = re.sub(r"(&?card%5Bnumber%5D=)[^&]*", r"\1[FILTERED]", transcript, flags=re.I)
        return re.sub(r"(&?card%5Bcvc%5D=)[^&]*", r"\1[FILTERED]", transcript, flags=re.I)

    # ---- Request builders ----
    def _add_order(self, post: Dict[str, Any], money: int, options: Dict[str, Any]) -> None:
        post["description"] = options.get("description") or "Active Merchant Purchase"
        if options.get("order_id"):
            post["reference_id"] = options["order_id"]
        post["currency"] = self.currency(options).lower()
        if options.get("monthly_installments"):
            post["monthly_installments"] = options["monthly_installments"]
        post["amount"] = self.amount(money)

    def _add_details_data(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        billing = options.get("billing_address") or {}
        details: Dict[str, Any] = {
            "name": options.get("customer") or billing.get("name"),
            "phone": options.get("phone") or billing.get("phone"),
        }
        if options.get("email"):
            details["email"] = options["email"]
        if options.get("ip"):
            details["ip"] = options["ip"]
        billing_address = self._address(
            options.get("billing_address") or options.get("address"),
            extra=("company_name", "tax_id", "name", "phone", "email"),
        )
        if billing_address is not None:
            details["billing_address"] = billing_address
        details["line_items"] = list(options.get("line_items") or [])
        details["shipment"] = self._shipment(options)
        post["details"] = details
        if options.get("device_fingerprint"):
            post["device_fingerprint"] = options["device_fingerprint"]

    def _shipment(self, options: Dict[str, Any]) -> Dict[str, Any]:
        shipment = {k: options[k] for k in ("carrier", "service", "tracking_number", "price") if options.get(k)}
        address = self._address(options.get("shipping_address"))
        if address is not None:
            shipment["address"] = address
        return shipment

    def _address(self, address: Optional[Dict[str, Any]], extra: tuple = ()) -> Optional[Dict[str, Any]]:
        if not address:
            return None
        out = {}
        for target, source in (("street1", "address1"), ("street2", "address2"), ("street3", "address3"),
                               ("city", "city"), ("state", "state"), ("country", "country"), ("zip", "zip")):
            if address.get(source):
                out[target] = address[source]
        for key in extra:
            if address.get(key):
                out[key] = address[key]
        return out

    def _add_payment_source(self, post: Dict[str, Any], payment: Any, options: Dict[str, Any]) -> None:
        if isinstance(payment, str):
            post["card"] = payment
        elif hasattr(payment, "number"):
            card = {
                "name": payment.name,
                "cvc": payment.verification_value,
                "number": payment.number,
                "exp_month": f"{payment.month:02d}",
                "exp_year": str(payment.year)[-2:],
            }
            address = self._address(options.get("billing_address") or options.get("address"))
            if address is not None:
                card["address"] = address
            post["card"] = card

    # ---- Commit ----
    def _headers(self, options: Dict[str, Any]) -> Dict[str, str]:
        return {
            "Accept": f"application/vnd.conekta-v{self.options['version']}+json",
            "Accept-Language": "es",
            "Authorization": basic_auth(self.options["key"]),
            "RaiseHtmlError": "false",
            "Conekta-Client-User-Agent": json.dumps({"agent": f"Conekta GatewayConnectBindings/{settings.APP_VERSION}"}),
            "X-Conekta-Client-User-Agent": self._client_user_agent(options),
            "X-Conekta-Client-User-Metadata": json.dumps(options.get("meta")),
        }

    def _client_user_agent(self, options: Dict[str, Any]) -> str:
        if not options.get("application"):
            return self.user_agent()
        return json.dumps({**json.loads(self.user_agent()), "application": options["application"]})

    def _parse(self, body: Optional[str]) -> Dict[str, Any]:
        if not body:
            return {}
        return json.loads(body)

    def _commit(self, method: str, path: str, parameters: Dict[str, Any], options: Dict[str, Any]) -> Response:
        success = False
        try:
            body = self.ssl_request(method, self.live_url + path, to_query(parameters), self._headers(options))
            try:
                raw = self._parse(body)
                success = "object" in raw and raw["object"] != "error"
            except ValueError:
                raw = self._json_error(body)
        except ResponseError as e:
            raw = self._response_error(e.body)
        except httpx.TransportError as e:
            return self.connection_failure(e)

        return Response(
            success=success,
            message=raw.get("message_to_purchaser") or raw.get("message"),
            params=raw,
            test=self.test,
            authorization=raw.get("id"),
        )

    def _response_error(self, body: str) -> Dict[str, Any]:
        try:
            return self._parse(body)
        except ValueError:
            return self._json_error(body)

    def _json_error(self, body: Optional[str]) -> Dict[str, Any]:
        msg = "Invalid response received from the Conekta API."
        msg += f"  (The raw response returned by the API was {body!r})"
        return {"message": msg}
