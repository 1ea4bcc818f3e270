from typing import Dict, Any, Optional, Tuple
import json
import re
import httpx

from ..base import Gateway
from ...billing.errors import ResponseError
from ...billing.response import Response
from ...utils.security import basic_auth

CARD_TYPES = {
    "visa": "visa",
    "master": "mast",
    "american_express": "amex",
    "discover": "disc",
}


def _split_names(full_name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    parts = (full_name or "").split()
    if not parts:
        return None, None
    if len(parts) == 1:
        return None, parts[0]
    return " ".join(parts[:-1]), parts[-1]


class ForteGateway(Gateway):
    """
    Forte REST v3, JSON + Basic(api_key:secret):
      - POST organizations/{org}/locations/{loc}/transactions   (sale / authorize / disburse / reverse)
      - PUT  .../transactions                                   (capture / void)
    authorization = transaction_id#authorization_code[#orig_transaction_id#orig_authorization_code]
    """

    name = "forte"
    display_name = "Forte"
    homepage_url = "https://www.forte.net"
    test_url = "https://sandbox.forte.net/api/v3"
    live_url = "https://api.forte.net/v3"

    supported_countries = ("US",)
    supported_cardtypes = ("visa", "master", "american_express", "discover")
    default_currency = "USD"
    money_format = "dollars"

    settings_credentials = {
        "api_key": "FORTE_API_KEY",
        "secret": "FORTE_SECRET",
        "location_id": "FORTE_LOCATION_ID",
        "account_id": "FORTE_ACCOUNT_ID",
    }

    def __init__(self, **options):
        super().__init__(**options)
        self.requires(self.options, "api_key", "secret", "location_id")
        if self.options.get("organization_id") is None and self.options.get("account_id") is None:
            raise ValueError("Missing required parameter: organization_id or account_id")

    # ---- Adapter API ----
    def purchase(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_amount(post, money)
        self._add_invoice(post, options)
        self._add_payment(post, payment, options)
        self._add_billing_address(post, payment, options)
        self._add_shipping_address(post, options)
        self._add_customer_data(post, options)
        self._add_xdata(post, options)
        post["action"] = "sale"
        return self._commit("POST", post)

    def authorize(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_amount(post, money)
        self._add_invoice(post, options)
        self._add_payment(post, payment, options)
        self._add_billing_address(post, payment, options)
        self._add_shipping_address(post, options)
        self._add_customer_data(post, options)
        self._add_xdata(post, options)
        post["action"] = "authorize"
        return self._commit("POST", post)

    def capture(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        post = {
            "transaction_id": self._transaction_id_from(authorization),
            "authorization_code": self._authorization_code_from(authorization) or "",
            "action": "capture",
        }
        return self._commit("PUT", post)

    def credit(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_amount(post, money)
        self._add_invoice(post, options)
        self._add_payment(post, payment, options)
        self._add_billing_address(post, payment, options)
        post["action"] = "disburse"
        return self._commit("POST", post)

    def refund(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        post: Dict[str, Any] = {}
        self._add_amount(post, money)
        post["original_transaction_id"] = self._transaction_id_from(authorization)
        post["authorization_code"] = self._authorization_code_from(authorization)
        post["action"] = "reverse"
        return self._commit("POST", post)

    def void(self, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        post = {
            "transaction_id": self._transaction_id_from(authorization),
            "authorization_code": self._authorization_code_from(authorization),
            "action": "void",
        }
        return self._commit("PUT", post)

    def verify(self, payment: Any, options: Optional[Dict[str, Any]] = None):
        options = options or {}
        return self.verify_with_void(
            lambda: self.authorize(100, payment, options),
            lambda authorization: self.void(authorization, options),
        )

    def supports_scrubbing(self) -> bool:
        return True

    def scrub(self, transcript: str) -> str:
        transcript = re.sub(r"(Authorization: Basic )[\w=]+", r"\1[FILTERED]", transcript)
        transcript = re.sub(r'(account_number\\?"\W+)\d+', r"\1[FILTERED]", transcript)
        return re.sub(r'(card_verification_value\\?"\W+)\d+', r"\1[FILTERED]", transcript)

    # ---- Request builders ----
    def _add_amount(self, post: Dict[str, Any], money: Optional[int]) -> None:
        post["authorization_amount"] = self.amount(money)

    @staticmethod
    def _add_invoice(post: Dict[str, Any], options: Dict[str, Any]) -> None:
        post["order_number"] = options.get("order_id")

    @staticmethod
    def _add_customer_data(post: Dict[str, Any], options: Dict[str, Any]) -> None:
        if options.get("ip"):
            post["customer_ip_address"] = options["ip"]
        if options.get("email"):
            post.setdefault("billing_address", {})["email"] = options["email"]

    @staticmethod
    def _add_xdata(post: Dict[str, Any], options: Dict[str, Any]) -> None:
        xdata = options.get("xdata") or {}
        post["xdata"] = {f"xdata_{n}": xdata[f"xdata_{n}"] for n in range(1, 10) if f"xdata_{n}" in xdata}

    @staticmethod
    def _physical_address(address: Dict[str, Any]) -> Dict[str, Any]:
        fields = {
            "street_line1": address.get("address1"),
            "street_line2": address.get("address2"),
            "postal_code": address.get("zip"),
            "region": address.get("state"),
            "locality": address.get("city"),
        }
        return {k: v for k, v in fields.items() if v}

    def _add_billing_address(self, post: Dict[str, Any], payment: Any, options: Dict[str, Any]) -> None:
        billing = post.setdefault("billing_address", {})
        address = options.get("billing_address") or options.get("address")
        if address:
            first_name, last_name = _split_names(address.get("name"))
            if first_name:
                billing["first_name"] = first_name
            if last_name:
                billing["last_name"] = last_name
            billing["physical_address"] = self._physical_address(address)
        # имя из платёжного средства, если в адресе его нет
        if not billing.get("first_name") and getattr(payment, "first_name", None):
            billing["first_name"] = payment.first_name
        if not billing.get("last_name") and getattr(payment, "last_name", None):
            billing["last_name"] = payment.last_name

    def _add_shipping_address(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        address = options.get("shipping_address")
        if not address:
            return
        first_name, last_name = _split_names(address.get("name"))
        shipping: Dict[str, Any] = {"physical_address": self._physical_address(address)}
        if first_name:
            shipping["first_name"] = first_name
        if last_name:
            shipping["last_name"] = last_name
        post["shipping_address"] = shipping

    def _add_payment(self, post: Dict[str, Any], payment: Any, options: Dict[str, Any]) -> None:
        if payment.type() == "check":
            post["echeck"] = {
                "account_holder": payment.name,
                "account_number": payment.account_number,
                "routing_number": payment.routing_number,
                "account_type": payment.account_type,
                "check_number": payment.number,
                "sec_code": options.get("sec_code") or "PPD",
            }
            return
        post["card"] = {
            "card_type": CARD_TYPES.get(self.card_brand(payment) or ""),
            "name_on_card": payment.name,
            "account_number": payment.number,
            "expire_month": payment.month,
            "expire_year": payment.year,
            "card_verification_value": payment.verification_value,
        }

    # ---- Commit ----
    def _endpoint(self) -> str:
        return f"/organizations/{self._organization_id()}/locations/{self._location_id()}/transactions"

    def _organization_id(self) -> str:
        value = str(self.options.get("organization_id") or self.options["account_id"])
        return value if value.startswith("org_") else f"org_{value}"

    def _location_id(self) -> str:
        value = str(self.options["location_id"])
        return value if value.startswith("loc_") else f"loc_{value}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": basic_auth(self.options["api_key"], self.options["secret"]),
            "X-Forte-Auth-Organization-Id": self._organization_id(),
            "Content-Type": "application/json",
        }

    def _commit(self, method: str, post: Dict[str, Any]) -> Response:
        post["location_id"] = self._location_id()
        try:
            raw = self.ssl_request(method, f"{self.url()}{self._endpoint()}", json.dumps(post), self._headers())
        except ResponseError as e:
            # тело 4xx содержит тот же response-блок с описанием ошибки
            if e.response.status_code >= 500:
                raise
            raw = e.body
        except httpx.TransportError as e:
            return self.connection_failure(e)

        try:
            response = json.loads(raw)
        except ValueError:
            self.logger.warning("gateway_parse_error", gateway=self.name)
            return Response(
                success=False,
                message=f"Invalid response received from the Forte API: {raw!r}",
                params={"raw_response": raw},
                test=self.test,
            )

        result = response.get("response") or {}
        return Response(
            success=result.get("response_code") == "A01",
            message=result.get("response_desc"),
            params=response,
            authorization=self._authorization_from(response, post),
            test=self.test,
            avs_result={"code": result.get("avs_result")},
            cvv_result=result.get("cvv_code"),
        )

    @staticmethod
    def _authorization_from(response: Dict[str, Any], post: Dict[str, Any]) -> str:
        parts = [response.get("transaction_id"), (response.get("response") or {}).get("authorization_code")]
        if post.get("action") == "capture":
            parts += [post.get("transaction_id"), post.get("authorization_code")]
        return "#".join(p or "" for p in parts)

    @staticmethod
    def _split_authorization(authorization: str) -> list:
        parts = (authorization or "").split("#")
        return parts + [""] * (4 - len(parts))

    def _authorization_code_from(self, authorization: str) -> str:
        _, code, _, original_code = self._split_authorization(authorization)[:4]
        return original_code or code

    def _transaction_id_from(self, authorization: str) -> str:
        transaction_id, _, original_id, _ = self._split_authorization(authorization)[:4]
        return original_id or transaction_id
