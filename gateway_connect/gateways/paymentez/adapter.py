from typing import Dict, Any, Optional
import json
import re
import time
import httpx

from ..base import Gateway
from ...billing.errors import ResponseError
from ...billing.response import Response, STANDARD_ERROR_CODE
from ...utils.security import b64, sha256_hex

STANDARD_ERROR_CODE_MAPPING = {
    1: "processing_error",
    6: "card_declined",
    9: "card_declined",
    10: "processing_error",
    11: "card_declined",
    12: "config_error",
    13: "config_error",
    19: "invalid_cvc",
    20: "config_error",
    21: "card_declined",
    22: "card_declined",
    23: "card_declined",
    24: "card_declined",
    25: "card_declined",
    26: "card_declined",
    27: "card_declined",
    28: "card_declined",
}

SUCCESS_STATUS = ("APPROVED", "PENDING", "pending", "success", 1, 0)

CARD_MAPPING = {
    "visa": "vi",
    "master": "mc",
    "american_express": "ax",
    "diners_club": "di",
    "elo": "el",
    "discover": "dc",
    "maestro": "ms",
    "sodexo": "sx",
    "olimpica": "ol",
    "carnet": "ct",
    "unionpay": "up",
    "jcb": "jc",
}


def _present(value: Any) -> bool:
    # пустым считаются только None и False, 0 и "" остаются значениями
    return value is not None and value is not False


class PaymentezGateway(Gateway):
    """
    Paymentez (LatAm), JSON + Auth-Token:
      - POST transaction/{debit|debit_cc|authorize|capture|verify|refund}
      - GET  transaction/{id}                 (inquire)
      - POST card/{add|delete}                (store / unstore)
    authorization = transaction.id (для карт - card.token)
    """

    name = "paymentez"
    display_name = "Paymentez"
    homepage_url = "https://secure.paymentez.com/"
    test_url = "https://ccapi-stg.paymentez.com/v2/"
    live_url = "https://ccapi.paymentez.com/v2/"

    supported_countries = ("MX", "EC", "CO", "BR", "CL", "PE")
    default_currency = "USD"
    money_format = "dollars"
    supported_cardtypes = (
        "visa", "master", "american_express", "diners_club", "elo", "alia", "olimpica",
        "discover", "maestro", "sodexo", "carnet", "unionpay", "jcb",
    )

    settings_credentials = {
        "application_code": "PAYMENTEZ_APPLICATION_CODE",
        "app_key": "PAYMENTEZ_APP_KEY",
    }

    def __init__(self, **options):
        super().__init__(**options)
        self.requires(self.options, "application_code", "app_key")

    # ---- Adapter API ----
    def purchase(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_invoice(post, money, options)
        self._add_payment(post, payment)
        self._add_customer_data(post, options)
        self._add_extra_params(post, options)
        action = "debit" if isinstance(payment, str) else "debit_cc"
        return self._commit_transaction(action, post)

    def authorize(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        if options.get("otp_flow"):
            return self.purchase(money, payment, options)
        post: Dict[str, Any] = {}
        self._add_invoice(post, money, options)
        self._add_payment(post, payment)
        self._add_customer_data(post, options)
        self._add_extra_params(post, options)
        return self._commit_transaction("authorize", post)

    def capture(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {"transaction": {"id": authorization}}
        # OTP / verify flow: type + value вместо суммы
        verify_flow = bool(options.get("type") and options.get("value"))
        if verify_flow:
            self._add_customer_data(post, options)
            post["type"] = options["type"]
            post["value"] = options["value"]
        elif money is not None:
            post["order"] = {"amount": float(self.amount(money))}
        return self._commit_transaction("verify" if verify_flow else "capture", post)

    def refund(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {"transaction": {"id": authorization}}
        if money is not None:
            post["order"] = {"amount": float(self.amount(money))}
        if options.get("more_info"):
            post["more_info"] = options["more_info"]
        return self._commit_transaction("refund", post)

    def void(self, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        return self._commit_transaction("refund", {"transaction": {"id": authorization}})

    def verify(self, payment: Any, options: Optional[Dict[str, Any]] = None):
        options = options or {}
        return self.verify_with_void(
            lambda: self.authorize(100, payment, options),
            lambda authorization: self.void(authorization, options),
            ignore_void=False,
            use_first_response=False,
        )

    def store(self, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_customer_data(post, options)
        self._add_payment(post, payment)

        response = self._commit_card("add", post)
        token = None if response.success else self._previous_card_token(response)
        if token is not None:
            # карта уже привязана: отвязываем и пробуем ещё раз
            self.unstore(token, options)
            response = self._commit_card("add", post)
        return response

    def unstore(self, identification: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post = {"card": {"token": identification}, "user": {"id": options.get("user_id")}}
        return self._commit_card("delete", post)

    def inquire(self, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        return self._commit_transaction("inquire", authorization)

    def supports_scrubbing(self) -> bool:
        return True

    def scrub(self, transcript: str) -> str:
        transcript = re.sub(r'(\\?"number\\?":)(\\?"[^"]+\\?")', r"\1[FILTERED]", transcript)
        transcript = re.sub(r'(\\?"cvc\\?":)(\\?"[^"]+\\?")', r"\1[FILTERED]", transcript)
        return re.sub(r"(Auth-Token: )([A-Za-z0-9=]+)", r"\1[FILTERED]", transcript)

    # ---- Request builders ----
    def _add_customer_data(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        self.requires(options, "user_id")
        user = post.setdefault("user", {})
        user["id"] = options["user_id"]
        if options.get("email"):
            user["email"] = options["email"]
        if options.get("ip"):
            user["ip_address"] = options["ip"]
        if options.get("fiscal_number"):
            user["fiscal_number"] = options["fiscal_number"]
        phone = options.get("phone") or (options.get("billing_address") or {}).get("phone")
        if phone:
            user["phone"] = phone

    def _add_invoice(self, post: Dict[str, Any], money: int, options: Dict[str, Any]) -> None:
        if options.get("session_id"):
            post["session_id"] = options["session_id"]
        order = post.setdefault("order", {})
        order["amount"] = float(self.amount(money))
        for key in ("vat", "dev_reference", "description", "discount", "installments",
                    "installments_type", "taxable_amount", "tax_percentage"):
            if options.get(key):
                order[key] = options[key]

    def _add_payment(self, post: Dict[str, Any], payment: Any) -> None:
        card = post.setdefault("card", {})
        if isinstance(payment, str):
            card["token"] = payment
        else:
            card["number"] = payment.number
            card["holder_name"] = payment.name
            card["expiry_month"] = payment.month
            card["expiry_year"] = payment.year
            card["cvc"] = payment.verification_value
            card["type"] = CARD_MAPPING.get(payment.brand)

    def _add_extra_params(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        extra_params: Dict[str, Any] = dict(options.get("extra_params") or {})
        three_ds = options.get("three_d_secure")
        if three_ds:
            auth_data = {
                "cavv": three_ds.get("cavv"),
                "xid": three_ds.get("xid"),
                "eci": three_ds.get("eci"),
                "version": three_ds.get("version"),
                "reference_id": three_ds.get("ds_transaction_id"),
                "status": three_ds.get("authentication_response_status") or three_ds.get("directory_response_status"),
            }
            auth_data = {k: v for k, v in auth_data.items() if v is not None}
            if auth_data:
                extra_params["auth_data"] = auth_data
        if extra_params:
            post["extra_params"] = extra_params

    # ---- Commit ----
    def _authentication_code(self) -> str:
        timestamp = str(int(time.time()))
        unique_token = sha256_hex(f"{self.options['app_key']}{timestamp}")
        return b64(f"{self.options['application_code']};{timestamp};{unique_token}")

    def _headers(self) -> Dict[str, str]:
        return {"Auth-Token": self._authentication_code(), "Content-Type": "application/json"}

    def _commit_raw(self, obj: str, action: str, parameters: Any) -> Dict[str, Any]:
        try:
            if action == "inquire":
                raw = self.ssl_get(f"{self.url()}{obj}/{parameters}", self._headers())
            else:
                raw = self.ssl_post(f"{self.url()}{obj}/{action}", json.dumps(parameters), self._headers())
        except ResponseError as e:
            raw = e.body
        try:
            return json.loads(raw)
        except ValueError:
            return {"status": "Internal server error"}

    def _commit_transaction(self, action: str, parameters: Any) -> Response:
        try:
            response = self._commit_raw("transaction", action, parameters)
        except httpx.TransportError as e:
            return self.connection_failure(e)
        return Response(
            success=self._success_from(response, action),
            message=self._message_from(response),
            params=response,
            authorization=self._authorization_from(response),
            test=self.test,
            error_code=self._error_code_from(response),
        )

    def _commit_card(self, action: str, parameters: Dict[str, Any]) -> Response:
        try:
            response = self._commit_raw("card", action, parameters)
        except httpx.TransportError as e:
            return self.connection_failure(e)
        success = self._card_success_from(response)
        return Response(
            success=success,
            message=self._card_message_from(response),
            params=response,
            authorization=(response.get("card") or {}).get("token"),
            test=self.test,
            error_code=None if success else STANDARD_ERROR_CODE["processing_error"],
        )

    def _success_from(self, response: Dict[str, Any], action: Optional[str] = None) -> bool:
        transaction = response.get("transaction") or {}
        current_status = transaction.get("current_status")
        request_status = response.get("status")
        status = next((s for s in (current_status, request_status, transaction.get("status")) if _present(s)), None)
        # статусы 0 и 1 не должны совпадать с False и True
        default = any(status == s and type(status) is type(s) for s in SUCCESS_STATUS)

        if action == "refund" and _present(current_status) and _present(request_status):
            return str(current_status).upper() == "CANCELLED" and str(request_status).lower() == "success"
        return default

    def _card_success_from(self, response: Dict[str, Any]) -> bool:
        if "error" in response:
            return False
        if response.get("message") == "card deleted":
            return True
        return (response.get("card") or {}).get("status") == "valid"

    def _message_from(self, response: Dict[str, Any]) -> Optional[str]:
        if response.get("detail"):
            return response["detail"]
        if not self._success_from(response) and response.get("error"):
            return response["error"].get("type")
        return (response.get("transaction") or {}).get("message") or response.get("message")

    def _card_message_from(self, response: Dict[str, Any]) -> Optional[str]:
        if "error" in response:
            return response["error"].get("type")
        return response.get("message") or (response.get("card") or {}).get("message")

    def _authorization_from(self, response: Dict[str, Any]) -> Optional[str]:
        return (response.get("transaction") or {}).get("id")

    def _previous_card_token(self, response: Response) -> Optional[str]:
        match = re.search(r"Card already added: (\d+)", response.message or "")
        return match.group(1) if match else None

    def _error_code_from(self, response: Dict[str, Any]) -> Optional[str]:
        if self._success_from(response):
            return None
        if response.get("transaction"):
            detail = response["transaction"].get("status_detail")
            if detail in STANDARD_ERROR_CODE_MAPPING:
                return STANDARD_ERROR_CODE[STANDARD_ERROR_CODE_MAPPING[detail]]
        elif response.get("error"):
            return STANDARD_ERROR_CODE["config_error"]
        return STANDARD_ERROR_CODE["processing_error"]
