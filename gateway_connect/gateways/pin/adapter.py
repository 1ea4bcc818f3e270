from typing import Dict, Any, Optional
import json
import re
from urllib.parse import quote
import httpx

from ..base import Gateway
from ...billing.credit_card import NetworkTokenizationCreditCard
from ...billing.errors import ResponseError
from ...billing.response import Response
from ...utils.security import basic_auth

INVALID_JSON_MESSAGE = (
    "Invalid JSON response received from Pin Payments. Please contact "
    "support@pinpayments.com if you continue to receive this message."
)

PLATFORM_TYPES = {"apple_pay": "applepay", "google_pay": "googlepay"}


class PinGateway(Gateway):
    """
    Pin Payments, JSON + Basic(api_key:):
      - POST   charges                 (purchase / authorize, capture=false)
      - PUT    charges/{token}/capture
      - PUT    charges/{token}/void
      - POST   charges/{token}/refunds
      - POST / PUT / DELETE customers  (store / update / unstore)
    authorization = response.token
    """

    name = "pin"
    display_name = "Pin Payments"
    homepage_url = "https://www.pinpayments.com/"
    test_url = "https://test-api.pinpayments.com/1"
    live_url = "https://api.pinpayments.com/1"

    supported_countries = ("AU", "NZ")
    supported_cardtypes = ("visa", "master", "american_express", "diners_club", "discover", "jcb")
    default_currency = "AUD"
    money_format = "cents"

    settings_credentials = {"api_key": "PIN_API_KEY"}

    def __init__(self, **options):
        super().__init__(**options)
        self.requires(self.options, "api_key")

    # ---- Adapter API ----
    def purchase(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_amount(post, money, options)
        self._add_customer_data(post, options)
        self._add_invoice(post, options)
        self._add_payment(post, payment)
        self._add_address(post, payment, options)
        self._add_capture(post, options)
        self._add_metadata(post, options)
        self._add_3ds(post, options)
        self._add_platform_adjustment(post, options)
        return self._commit("POST", "charges", post, options)

    def authorize(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        return self.purchase(money, payment, {**(options or {}), "capture": False})

    def capture(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        return self._commit("PUT", f"charges/{quote(authorization, safe='')}/capture",
                            {"amount": self.amount(money)}, options or {})

    def refund(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        return self._commit("POST", f"charges/{quote(authorization, safe='')}/refunds",
                            {"amount": self.amount(money)}, options or {})

    def void(self, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        return self._commit("PUT", f"charges/{quote(authorization, safe='')}/void", {}, options or {})

    def verify(self, payment: Any, options: Optional[Dict[str, Any]] = None):
        options = options or {}
        return self.verify_with_void(
            lambda: self.authorize(100, payment, options),
            lambda authorization: self.void(authorization, options),
        )

    def store(self, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_payment(post, payment)
        self._add_customer_data(post, options)
        self._add_address(post, payment, options)
        return self._commit("POST", "customers", post, options)

    def update(self, token: str, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_payment(post, payment)
        self._add_customer_data(post, options)
        self._add_address(post, payment, options)
        return self._commit("PUT", f"customers/{quote(token, safe='')}", post, options)

    def unstore(self, token: str, options: Optional[Dict[str, Any]] = None) -> Response:
        return self._commit("DELETE", f"customers/{quote(token, safe='')}", {}, options or {})

    def supports_scrubbing(self) -> bool:
        return True

    def scrub(self, transcript: str) -> str:
        transcript = re.sub(r"(Authorization: Basic )[\w=]+", r"\1[FILTERED]", transcript)
        transcript = re.sub(r'(number\\?":\\?")(\d*)', r"\1[FILTERED]", transcript)
        transcript = re.sub(r'(cvc\\?":\\?")(\d*)', r"\1[FILTERED]", transcript)
        return re.sub(r'(cryptogram\\?":\\?")([^"\\]*)', r"\1[FILTERED]", transcript)

    # ---- Request builders ----
    def _add_amount(self, post: Dict[str, Any], money: int, options: Dict[str, Any]) -> None:
        post["amount"] = self.amount(money)
        currency = self.currency(options)
        if currency:
            post["currency"] = currency.upper()

    @staticmethod
    def _add_customer_data(post: Dict[str, Any], options: Dict[str, Any]) -> None:
        if options.get("email"):
            post["email"] = options["email"]
        if options.get("ip"):
            post["ip_address"] = options["ip"]

    @staticmethod
    def _add_invoice(post: Dict[str, Any], options: Dict[str, Any]) -> None:
        post["description"] = options.get("description") or "Purchase"
        if options.get("reference"):
            post["reference"] = options["reference"]

    @staticmethod
    def _add_capture(post: Dict[str, Any], options: Dict[str, Any]) -> None:
        post["capture"] = options.get("capture") is not False

    @staticmethod
    def _add_metadata(post: Dict[str, Any], options: Dict[str, Any]) -> None:
        if options.get("metadata"):
            post["metadata"] = options["metadata"]

    @staticmethod
    def _add_platform_adjustment(post: Dict[str, Any], options: Dict[str, Any]) -> None:
        if options.get("platform_adjustment"):
            post["platform_adjustment"] = options["platform_adjustment"]

    @staticmethod
    def _add_3ds(post: Dict[str, Any], options: Dict[str, Any]) -> None:
        three_ds = options.get("three_d_secure")
        if not three_ds:
            return
        # enabled: Pin сам проводит аутентификацию, иначе passthrough внешнего MPI
        if three_ds.get("enabled"):
            block: Dict[str, Any] = {"enabled": True}
            if three_ds.get("fallback_ok") is not None:
                block["fallback_ok"] = three_ds["fallback_ok"]
            if three_ds.get("callback_url"):
                block["callback_url"] = three_ds["callback_url"]
        else:
            block = {
                "version": three_ds.get("version"),
                "eci": three_ds.get("eci"),
                "cavv": three_ds.get("cavv"),
                "transaction_id": three_ds.get("ds_transaction_id") or three_ds.get("xid"),
            }
            block = {k: v for k, v in block.items() if v is not None}
        post["three_d_secure"] = block

    def _add_payment(self, post: Dict[str, Any], payment: Any) -> None:
        if isinstance(payment, str):
            if payment.startswith("card_"):
                post["card_token"] = payment
            else:
                post["customer_token"] = payment
            return
        card = post.setdefault("card", {})
        card.update({
            "number": payment.number,
            "expiry_month": payment.month,
            "expiry_year": payment.year,
            "cvc": payment.verification_value,
            "name": payment.name,
        })
        if isinstance(payment, NetworkTokenizationCreditCard):
            post["platform_type"] = PLATFORM_TYPES.get(payment.source, payment.source)
            if payment.payment_cryptogram:
                card["cryptogram"] = payment.payment_cryptogram
            if payment.eci:
                card["eci"] = payment.eci

    @staticmethod
    def _add_address(post: Dict[str, Any], payment: Any, options: Dict[str, Any]) -> None:
        if isinstance(payment, str):
            return
        address = options.get("billing_address") or options.get("address")
        if not address:
            return
        post.setdefault("card", {}).update({
            "address_line1": address.get("address1"),
            "address_line2": address.get("address2"),
            "address_city": address.get("city"),
            "address_postcode": address.get("zip"),
            "address_state": address.get("state"),
            "address_country": address.get("country"),
        })

    # ---- Commit ----
    def _headers(self, options: Dict[str, Any]) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": basic_auth(self.options["api_key"]),
        }
        if options.get("partner_key"):
            headers["X-Partner-Key"] = options["partner_key"]
        if options.get("safe_card"):
            headers["X-Safe-Card"] = options["safe_card"]
        return headers

    def _commit(self, method: str, action: str, post: Dict[str, Any], options: Dict[str, Any]) -> Response:
        url = f"{self.url()}/{action}"
        data = json.dumps(post) if post else None
        try:
            raw = self.ssl_request(method, url, data, self._headers(options))
        except ResponseError as e:
            raw = e.body
        except httpx.TransportError as e:
            return self.connection_failure(e)

        try:
            body = json.loads(raw) if raw and raw.strip() else {}
        except ValueError:
            return self._unparsable_response(raw)

        if "error" in body:
            return Response(
                success=False,
                message=body.get("error_description"),
                params=body,
                test=self.test,
            )
        response = body.get("response") or {}
        return Response(
            success=True,
            message=response.get("status_message"),
            params=body,
            authorization=response.get("token"),
            test=self.test,
        )

    def _unparsable_response(self, raw: str) -> Response:
        self.logger.warning("gateway_parse_error", gateway=self.name)
        return Response(
            success=False,
            message=f"{INVALID_JSON_MESSAGE} (The raw response returned by the API was {raw!r})",
            params={"raw_response": raw},
            test=self.test,
        )
