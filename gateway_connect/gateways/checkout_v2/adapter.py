from typing import Dict, Any, Optional
import json
import re
import httpx

from ..base import Gateway
from ...billing.credit_card import NetworkTokenizationCreditCard
from ...billing.errors import ResponseError, OAuthResponseError
from ...billing.response import Response, MultiResponse, STANDARD_ERROR_CODE
from ...utils.security import basic_auth

STANDARD_ERROR_CODE_MAPPING = {
    "20014": STANDARD_ERROR_CODE["invalid_number"],
    "20100": STANDARD_ERROR_CODE["invalid_expiry_date"],
    "20054": STANDARD_ERROR_CODE["expired_card"],
    "40104": STANDARD_ERROR_CODE["incorrect_cvc"],
    "40108": STANDARD_ERROR_CODE["incorrect_zip"],
    "40111": STANDARD_ERROR_CODE["incorrect_address"],
    "20005": STANDARD_ERROR_CODE["card_declined"],
    "20088": STANDARD_ERROR_CODE["processing_error"],
    "20001": STANDARD_ERROR_CODE["call_issuer"],
    "30004": STANDARD_ERROR_CODE["pickup_card"],
    "20087": STANDARD_ERROR_CODE["invalid_cvc"],
}

PAYMENT_TYPE_MAPPING = {
    "installment": "Installment",
    "recurring": "Recurring",
    "unscheduled": "Unscheduled",
}

LEVEL_3_ITEM_FIELDS = (
    "reference", "name", "quantity", "unit_price", "tax_amount", "discount_amount",
    "total_amount", "commodity_code", "unit_of_measure",
)

INVALID_JSON_MESSAGE = (
    "Invalid JSON response received from Checkout.com Unified Payments Gateway. "
    "Please contact Checkout.com if you continue to receive this message."
)


class CheckoutV2Gateway(Gateway):
    """
    Checkout.com Unified Payments, JSON:
      - POST /payments                          (purchase / authorize / credit)
      - POST /payments/{id}/captures|refunds|voids|authorizations
      - GET  /payments/{id}                     (verify_payment)
      - POST /tokens -> POST /instruments       (store), DELETE /instruments/{id}
    Auth: secret_key (Bearer) или OAuth client_credentials (токен на каждый вызов).
    authorization = id платежа (для store - id инструмента src_...)
    """

    name = "checkout_v2"
    display_name = "Checkout.com Unified Payments"
    homepage_url = "https://www.checkout.com/"
    test_url = "https://api.sandbox.checkout.com"
    live_url = "https://api.checkout.com"
    test_access_url = "https://access.sandbox.checkout.com/connect/token"
    live_access_url = "https://access.checkout.com/connect/token"

    supported_countries = (
        "AD", "AE", "AR", "AT", "AU", "BE", "BG", "BH", "BR", "CH", "CL", "CN", "CO", "CY", "CZ",
        "DE", "DK", "EE", "EG", "ES", "FI", "FR", "GB", "GR", "HK", "HR", "HU", "IE", "IS", "IT",
        "JO", "JP", "KW", "LI", "LT", "LU", "LV", "MC", "MT", "MX", "MY", "NL", "NO", "NZ", "OM",
        "PE", "PL", "PT", "QA", "RO", "SA", "SE", "SG", "SI", "SK", "SM", "TR", "US",
    )
    default_currency = "USD"
    money_format = "cents"
    supported_cardtypes = (
        "visa", "master", "american_express", "diners_club", "maestro", "discover", "jcb",
        "mada", "bp_plus", "patagonia_365", "tarjeta_sol",
    )
    currencies_without_fractions = (
        "BIF", "DJF", "GNF", "ISK", "KMF", "XAF", "CLF", "XPF", "JPY", "PYG", "RWF", "KRW",
        "VUV", "VND", "XOF",
    )

    settings_credentials = {
        "secret_key": "CHECKOUT_SECRET_KEY",
        "client_id": "CHECKOUT_CLIENT_ID",
        "client_secret": "CHECKOUT_CLIENT_SECRET",
    }

    def __init__(self, **options):
        super().__init__(**options)
        if self.options.get("secret_key") is not None:
            self.requires(self.options, "secret_key")
        else:
            self.requires(self.options, "client_id", "client_secret")

    # ---- Adapter API ----
    def purchase(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._build_auth_or_purchase(post, money, payment, options)
        return self._commit("purchase", post, options)

    def authorize(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {"capture": False}
        self._build_auth_or_purchase(post, money, payment, options)
        if options.get("incremental_authorization"):
            return self._commit("incremental_authorize", post, options, options["incremental_authorization"])
        return self._commit("authorize", post, options)

    def capture(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        if options.get("capture_type"):
            post["capture_type"] = options["capture_type"]
        self._add_invoice(post, money, options)
        self._add_customer_data(post, options)
        self._add_shipping_address(post, options)
        self._add_metadata(post, options)
        self._add_level_two_three(post, options)
        return self._commit("capture", post, options, authorization)

    def refund(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_invoice(post, money, options)
        self._add_metadata(post, options)
        return self._commit("refund", post, options, authorization)

    def void(self, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_metadata(post, options)
        return self._commit("void", post, options, authorization)

    def credit(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        """Выплата на карту (payout): source - счёт мерчанта, destination - карта."""
        options = options or {}
        post: Dict[str, Any] = {}
        self._add_processing_channel(post, options)
        self._add_invoice(post, money, options)
        post["source"] = {"type": options.get("source_type"), "id": options.get("source_id")}
        self._add_instruction_data(post, options)
        self._add_payout_sender(post, options)
        self._add_destination(post, payment, options)
        self._add_metadata(post, options)
        return self._commit("credit", post, options)

    def verify(self, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        # карта проверяется нулевой авторизацией, void не нужен
        return self.authorize(0, payment, options)

    def verify_payment(self, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        return self._commit("verify_payment", None, options or {}, authorization, method="GET")

    def store(self, payment: Any, options: Optional[Dict[str, Any]] = None):
        options = options or {}
        multi = MultiResponse()
        if isinstance(payment, NetworkTokenizationCreditCard):
            multi.process(lambda: self.verify(payment, options))
            if not multi.success:
                return multi
            params = multi.params
            source = dict(params.get("source") or {})
            source["customer"] = params.get("customer")
            multi.process(lambda: self._response("store", True, source))
            return multi

        multi.process(lambda: self._tokenize(payment, options))
        if not multi.success:
            return multi
        post: Dict[str, Any] = {}
        self._add_payment_method(post, multi.params["token"], options)
        post.update(post.pop("source"))
        self._add_customer_data(post, options)
        self._add_shipping_address(post, options)
        self._add_metadata(post, options)
        multi.process(lambda: self._commit("store", post, options))
        return multi

    def unstore(self, identification: str, options: Optional[Dict[str, Any]] = None) -> Response:
        return self._commit("unstore", None, options or {}, identification, method="DELETE")

    def supports_scrubbing(self) -> bool:
        return True

    def scrub(self, transcript: str) -> str:
        transcript = re.sub(r"(Authorization: )[^\\]*", r"\1[FILTERED]", transcript)
        transcript = re.sub(r'("number\\":\\")\d+', r"\1[FILTERED]", transcript)
        transcript = re.sub(r'("cvv\\":\\")\d+', r"\1[FILTERED]", transcript)
        transcript = re.sub(r'("cryptogram\\":\\")[\w=]+', r"\1[FILTERED]", transcript)
        return re.sub(r'("token\\":\\")\w+', r"\1[FILTERED]", transcript)

    # ---- Request builders ----
    def _build_auth_or_purchase(self, post: Dict[str, Any], money: int, payment: Any, options: Dict[str, Any]) -> None:
        self._add_invoice(post, money, options)
        if options.get("authorization_type"):
            post["authorization_type"] = options["authorization_type"]
        self._add_payment_method(post, payment, options)
        self._add_customer_data(post, options)
        self._add_extra_customer_data(post, payment, options)
        self._add_shipping_address(post, options)
        self._add_stored_credential_options(post, options)
        self._add_3ds(post, options)
        self._add_metadata(post, options, payment)
        self._add_processing_channel(post, options)
        self._add_recipient_data(post, options)
        self._add_processing_data(post, options)
        self._add_payment_sender_data(post, options)
        self._add_risk_data(post, options)
        if options.get("partial_authorization"):
            post["partial_authorization"] = {"enabled": True}
        self._add_level_two_three(post, options)
        self._add_account_name_inquiry(post, options)

    def _add_invoice(self, post: Dict[str, Any], money: Optional[int], options: Dict[str, Any]) -> None:
        currency = self.currency(options)
        if money is not None:
            post["amount"] = self.localized_amount(money, currency)
        if options.get("order_id"):
            post["reference"] = options["order_id"]
        post["currency"] = currency
        if options.get("descriptor_name") or options.get("descriptor_city"):
            descriptor = post["billing_descriptor"] = {}
            if options.get("descriptor_name"):
                descriptor["name"] = options["descriptor_name"]
            if options.get("descriptor_city"):
                descriptor["city"] = options["descriptor_city"]

    def _add_metadata(self, post: Dict[str, Any], options: Dict[str, Any], payment: Any = None) -> None:
        metadata = post.setdefault("metadata", {})
        metadata["udf5"] = self.options.get("application_id") or "ActiveMerchant"
        if options.get("metadata"):
            metadata.update(options["metadata"])
        if self.card_brand(payment) == "mada":
            metadata["udf1"] = "mada"

    def _add_payment_method(self, post: Dict[str, Any], payment: Any, options: Dict[str, Any]) -> None:
        source: Dict[str, Any] = {}
        if isinstance(payment, str):
            if payment.startswith("tok_"):
                source["type"] = "token"
                source["token"] = payment
            else:
                source["type"] = "id"
                source["id"] = payment
        elif isinstance(payment, NetworkTokenizationCreditCard):
            token_type = self._token_type_from(payment)
            eci = payment.eci or options.get("eci")
            if eci is None and token_type == "vts":
                eci = "05"
            source["type"] = "network_token"
            source["token"] = payment.number
            source["token_type"] = token_type
            if payment.payment_cryptogram:
                source["cryptogram"] = payment.payment_cryptogram
            if eci:
                source["eci"] = eci
            self._add_expiry(source, payment)
        else:
            source["type"] = "card"
            source["name"] = payment.name
            source["number"] = payment.number
            source["cvv"] = payment.verification_value
            if options.get("card_on_file") is True:
                source["stored"] = "true"
            self._add_expiry(source, payment)
        post["source"] = source

    @staticmethod
    def _add_expiry(source: Dict[str, Any], payment: Any) -> None:
        if getattr(payment, "year", None):
            source["expiry_year"] = f"{int(payment.year):04d}"
        if getattr(payment, "month", None):
            source["expiry_month"] = f"{int(payment.month):02d}"

    @staticmethod
    def _token_type_from(payment: NetworkTokenizationCreditCard) -> str:
        if payment.source == "network_token":
            return "vts" if payment.brand == "visa" else "mdes"
        if payment.source in ("google_pay", "android_pay"):
            return "googlepay"
        return "applepay"

    @staticmethod
    def _address(address: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "address_line1": address.get("address1"),
            "address_line2": address.get("address2"),
            "city": address.get("city"),
            "state": address.get("state"),
            "country": address.get("country"),
            "zip": address.get("zip"),
        }

    def _add_customer_data(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        customer = post.setdefault("customer", {})
        if options.get("email"):
            customer["email"] = options["email"]
        if options.get("ip"):
            post["payment_ip"] = options["ip"]
        address = options.get("billing_address")
        if address and "source" in post:
            post["source"]["billing_address"] = self._address(address)

    def _add_extra_customer_data(self, post: Dict[str, Any], payment: Any, options: Dict[str, Any]) -> None:
        billing = options.get("billing_address") or {}
        phone = options.get("phone") or billing.get("phone") or billing.get("phone_number")
        post["source"]["phone"] = {"number": phone}
        if options.get("phone_country_code"):
            post["source"]["phone"]["country_code"] = options["phone_country_code"]
        if not isinstance(payment, str) and getattr(payment, "name", None):
            post["customer"]["name"] = payment.name

    def _add_shipping_address(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        address = options.get("shipping_address")
        if not address:
            return
        post.setdefault("shipping", {})["address"] = self._address(address)
        if address.get("phone"):
            post["shipping"]["phone"] = {"number": address["phone"]}

    def _add_stored_credential_options(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        if options.get("transaction_indicator") == 2:
            post["payment_type"] = "Recurring"
        if options.get("previous_charge_id"):
            post["previous_payment_id"] = options["previous_charge_id"]
        if (options.get("metadata") or {}).get("manual_entry"):
            post["payment_type"] = "MOTO"

        stored_credential = options.get("stored_credential")
        if not stored_credential:
            return
        initiator = stored_credential.get("initiator")
        reason_type = stored_credential.get("reason_type")
        post["merchant_initiated"] = initiator != "cardholder"
        if reason_type in PAYMENT_TYPE_MAPPING:
            post["payment_type"] = PAYMENT_TYPE_MAPPING[reason_type]
        if reason_type == "unscheduled" and initiator == "cardholder":
            post["payment_type"] = "Regular"
        if stored_credential.get("initial_transaction") is False:
            post["source"]["stored"] = True
            previous = stored_credential.get("network_transaction_id") or options.get("merchant_initiated_transaction_id")
            if previous:
                post["previous_payment_id"] = previous

    def _add_3ds(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        three_d_secure = options.get("three_d_secure")
        if not (three_d_secure or options.get("execute_threed")):
            return
        three_ds = post["3ds"] = {"enabled": True}
        if options.get("callback_url"):
            post["success_url"] = f"{options['callback_url']}?status=success"
            post["failure_url"] = f"{options['callback_url']}?status=failure"
        for key in ("attempt_n3d", "challenge_indicator", "exemption"):
            if options.get(key):
                three_ds[key] = options[key]
        if three_d_secure:
            three_ds["eci"] = three_d_secure.get("eci")
            three_ds["cryptogram"] = three_d_secure.get("cavv") or three_d_secure.get("cryptogram")
            three_ds["version"] = three_d_secure.get("version")
            three_ds["xid"] = three_d_secure.get("ds_transaction_id") or three_d_secure.get("xid")
            three_ds["status"] = three_d_secure.get("authentication_response_status")

    def _add_processing_channel(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        if options.get("processing_channel_id"):
            post["processing_channel_id"] = options["processing_channel_id"]

    def _add_recipient_data(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        recipient = options.get("recipient")
        if not recipient:
            return
        post["recipient"] = {
            k: recipient[k]
            for k in ("dob", "zip", "account_number", "first_name", "last_name")
            if recipient.get(k) is not None
        }
        address = recipient.get("address")
        if address:
            post["recipient"]["address"] = {
                k: address[k]
                for k in ("address_line1", "address_line2", "city", "state", "zip", "country")
                if address.get(k) is not None
            }

    def _add_processing_data(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        if options.get("processing"):
            post.setdefault("processing", {}).update(options["processing"])

    def _add_payment_sender_data(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        sender = options.get("sender")
        if not sender:
            return
        post["sender"] = {
            k: sender[k]
            for k in ("type", "first_name", "last_name", "date_of_birth", "reference")
            if sender.get(k) is not None
        }
        if sender.get("address"):
            post["sender"]["address"] = self._address(sender["address"])
        if sender.get("identification"):
            post["sender"]["identification"] = dict(sender["identification"])

    def _add_risk_data(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        risk = options.get("risk")
        if not risk:
            return
        post["risk"] = {"enabled": str(risk.get("enabled")).lower() == "true"}
        if risk.get("device_session_id"):
            post["risk"]["device_session_id"] = risk["device_session_id"]

    def _add_level_two_three(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        if options.get("tax_number") is not None:
            post.setdefault("customer", {})["tax_number"] = options["tax_number"]
        processing = {
            "order_id": options.get("invoice_id"),
            "tax_amount": options.get("tax_amount"),
            "discount_amount": options.get("discount_amount"),
            "duty_amount": options.get("duty_amount"),
            "shipping_amount": options.get("shipping_amount"),
        }
        processing = {k: v for k, v in processing.items() if v is not None}
        if processing:
            post.setdefault("processing", {}).update(processing)
        if options.get("from_address_zip") is not None:
            post.setdefault("shipping", {})["from_address_zip"] = options["from_address_zip"]
        if options.get("line_items"):
            post["items"] = [
                {k: item[k] for k in LEVEL_3_ITEM_FIELDS if item.get(k) is not None}
                for item in options["line_items"]
            ]

    def _add_account_name_inquiry(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        if not options.get("account_name_inquiry"):
            return
        post["source"]["account_holder"] = options.get("account_holder")
        post.setdefault("processing", {})["account_name_inquiry"] = True

    # ---- Payouts ----
    def _add_instruction_data(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        post["instruction"] = {"funds_transfer_type": options.get("funds_transfer_type") or "FD"}
        if options.get("instruction_purpose"):
            post["instruction"]["purpose"] = options["instruction_purpose"]

    def _add_destination(self, post: Dict[str, Any], payment: Any, options: Dict[str, Any]) -> None:
        destination: Dict[str, Any] = {
            "type": "card",
            "number": payment.number,
            "expiry_month": payment.month,
            "expiry_year": payment.year,
            "account_holder": {
                "type": options.get("account_holder_type"),
                "first_name": payment.first_name,
                "last_name": payment.last_name,
            },
        }
        if options.get("payout"):
            self._add_payout_account_holder(destination["account_holder"], options)
        post["destination"] = destination

    def _add_payout_account_holder(self, holder: Dict[str, Any], options: Dict[str, Any]) -> None:
        details = (options.get("destination") or {}).get("account_holder") or {}
        for key in ("phone", "identification"):
            if details.get(key):
                holder[key] = dict(details[key])
        for key in ("email", "date_of_birth", "country_of_birth"):
            if details.get(key):
                holder[key] = details[key]
        if options.get("billing_address"):
            holder["billing_address"] = self._address(options["billing_address"])

    def _add_payout_sender(self, post: Dict[str, Any], options: Dict[str, Any]) -> None:
        sender = options.get("sender")
        if not (options.get("payout") and sender):
            return
        post["sender"] = {
            k: sender[k]
            for k in (
                "type", "first_name", "middle_name", "last_name", "reference", "reference_type",
                "source_of_funds", "date_of_birth", "country_of_birth", "nationality",
            )
            if sender.get(k) is not None
        }
        if sender.get("identification"):
            post["sender"]["identification"] = dict(sender["identification"])
        if sender.get("address"):
            post["sender"]["address"] = self._address(sender["address"])

    # ---- Commit ----
    def _tokenize(self, payment: Any, options: Dict[str, Any]) -> Response:
        post: Dict[str, Any] = {}
        self._add_payment_method(post, payment, options)
        self._add_customer_data(post, options)
        return self._commit("tokens", post["source"], options)

    def _access_url(self) -> str:
        return self.test_access_url if self.test else self.live_access_url

    def _setup_access_token(self) -> str:
        headers = {
            "Authorization": basic_auth(self.options["client_id"], self.options["client_secret"]),
            "Content-Type": "application/x-www-form-urlencoded",
        }
        try:
            raw = self.ssl_post(self._access_url(), "grant_type=client_credentials", headers)
        except ResponseError as e:
            raise OAuthResponseError(e.response) from e
        try:
            return json.loads(raw)["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise OAuthResponseError(None, f"Invalid access token response: {raw!r}") from e

    def _headers(self, action: str, options: Dict[str, Any]) -> Dict[str, str]:
        if action == "tokens" and self.options.get("public_key"):
            auth = self.options["public_key"]
        elif self.options.get("secret_key"):
            auth = f"Bearer {self.options['secret_key']}"
        else:
            auth = f"Bearer {self._setup_access_token()}"
        headers = {"Authorization": auth, "Content-Type": "application/json;charset=UTF-8"}
        if options.get("idempotency_key"):
            headers["Cko-Idempotency-Key"] = options["idempotency_key"]
        return headers

    def _url(self, action: str, authorization: Optional[str] = None) -> str:
        base = self.url()
        if action in ("authorize", "purchase", "credit"):
            return f"{base}/payments"
        if action == "capture":
            return f"{base}/payments/{authorization}/captures"
        if action == "refund":
            return f"{base}/payments/{authorization}/refunds"
        if action == "void":
            return f"{base}/payments/{authorization}/voids"
        if action == "incremental_authorize":
            return f"{base}/payments/{authorization}/authorizations"
        if action == "verify_payment":
            return f"{base}/payments/{authorization}"
        if action == "tokens":
            return f"{base}/tokens"
        if action == "store":
            return f"{base}/instruments"
        if action == "unstore":
            return f"{base}/instruments/{authorization}"
        raise ValueError(f"Unknown action: {action}")

    def _commit(self, action: str, post: Optional[Dict[str, Any]], options: Dict[str, Any],
                authorization: Optional[str] = None, method: str = "POST") -> Response:
        data = json.dumps(post, separators=(",", ":")) if post else None
        try:
            raw = self.ssl_request(method, self._url(action, authorization), data, self._headers(action, options))
            if action == "unstore":
                # DELETE /instruments отвечает 204 без тела
                return self._response(action, True, {"response_code": 204})
            response = self._parse(raw)
            if action == "capture" and "payment" in (response.get("_links") or {}):
                response["id"] = response["_links"]["payment"]["href"].rstrip("/").split("/")[-1]
        except ResponseError as e:
            if not 400 <= e.response.status_code < 500:
                raise
            response = self._parse(e.body, error=e.response)
        except httpx.TransportError as e:
            return self.connection_failure(e)
        return self._response(action, self._success_from(action, response), response, options)

    def _parse(self, body: str, error: Optional[httpx.Response] = None) -> Dict[str, Any]:
        try:
            return json.loads(body)
        except ValueError:
            response: Dict[str, Any] = {
                "error_type": error.status_code if error is not None else None,
                "message": INVALID_JSON_MESSAGE,
                "raw_response": self.scrub(body or ""),
            }
            if error is not None and error.reason_phrase:
                response["error_codes"] = [error.reason_phrase]
            return response

    def _response(self, action: str, succeeded: bool, response: Dict[str, Any],
                  options: Optional[Dict[str, Any]] = None) -> Response:
        source = response.get("source") if isinstance(response.get("source"), dict) else {}
        return Response(
            success=succeeded,
            message=self._message_from(succeeded, response),
            params=response,
            authorization=None if action == "unstore" else response.get("id"),
            test=self.test,
            error_code=self._error_code_from(succeeded, response),
            avs_result={"code": source.get("avs_check")},
            cvv_result=source.get("cvv_check"),
        )

    def _success_from(self, action: str, response: Dict[str, Any]) -> bool:
        if action == "credit":
            return response.get("status") == "Pending"
        store_id = response.get("token") or response.get("id")
        if isinstance(store_id, str):
            if action == "tokens" and "tok" in store_id:
                return True
            if action == "store" and "src_" in store_id:
                return True
        if response.get("response_summary") == "Approved" or response.get("approved") is True:
            return True
        return "response_summary" not in response and "action_id" in response

    @staticmethod
    def _message_from(succeeded: bool, response: Dict[str, Any]) -> str:
        if succeeded:
            return "Succeeded"
        if response.get("error_type"):
            codes = response.get("error_codes") or []
            return f"{response['error_type']}: {codes[0] if codes else ''}".rstrip(": ")
        actions = response.get("actions") or [{}]
        return (
            response.get("response_summary")
            or actions[0].get("response_summary")
            or response.get("response_code")
            or response.get("status")
            or response.get("message")
            or "Unable to read error message"
        )

    @staticmethod
    def _error_code_from(succeeded: bool, response: Dict[str, Any]) -> Optional[str]:
        if succeeded:
            return None
        if response.get("error_type") and response.get("error_codes"):
            return f"{response['error_type']}: {', '.join(str(c) for c in response['error_codes'])}"
        if response.get("error_type"):
            return str(response["error_type"])
        actions = response.get("actions") or [{}]
        code = response.get("response_code") or actions[0].get("response_code")
        return STANDARD_ERROR_CODE_MAPPING.get(code)
