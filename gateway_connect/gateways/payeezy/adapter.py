from typing import Dict, Any, Optional
import json
import secrets
import re
import time
import httpx

from ..base import Gateway
from ...billing.check import Check
from ...billing.credit_card import NetworkTokenizationCreditCard
from ...billing.errors import ResponseError
from ...billing.response import Response
from ...utils.security import b64, hmac_sha256_hex

CREDIT_CARD_BRAND = {
    "visa": "Visa",
    "master": "Mastercard",
    "american_express": "American Express",
    "discover": "Discover",
    "jcb": "JCB",
    "diners_club": "Diners Club",
}


class PayeezyGateway(Gateway):
    """
    Payeezy (First Data), JSON + HMAC:
      - POST /transactions                    (purchase, authorize, credit)
      - POST /transactions/{transaction_id}   (capture, refund, void)
      - POST /transactions/tokens             (store)
    authorization = "transaction_id|transaction_tag|method|amount"
    """

    name = "payeezy"
    display_name = "Payeezy"
    homepage_url = "https://developer.payeezy.com/"
    test_url = "https://api-cert.payeezy.com/v1"
    integration_url = "https://api-cat.payeezy.com/v1"
    live_url = "https://api.payeezy.com/v1"

    default_currency = "USD"
    money_format = "cents"
    supported_countries = ("US", "CA")
    supported_cardtypes = ("visa", "master", "american_express", "discover", "jcb", "diners_club")

    settings_credentials = {
        "apikey": "PAYEEZY_APIKEY",
        "apisecret": "PAYEEZY_APISECRET",
        "token": "PAYEEZY_TOKEN",
    }

    def __init__(self, **options):
        super().__init__(**options)
        self.requires(self.options, "apikey", "apisecret", "token")

    # ---- Adapter API ----
    def purchase(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        params: Dict[str, Any] = {"transaction_type": "recurring" if isinstance(payment, str) else "purchase"}
        self._add_sale_fields(params, money, payment, options)
        return self._commit(params, options)

    def authorize(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        params: Dict[str, Any] = {"transaction_type": "authorize"}
        self._add_sale_fields(params, money, payment, options)
        return self._commit(params, options)

    def capture(self, money: int, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        params: Dict[str, Any] = {"transaction_type": "capture"}
        self._add_authorization_info(params, authorization)
        self._add_amount(params, money, options)
        self._add_soft_descriptors(params, options)
        return self._commit(params, options)

    def refund(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        params: Dict[str, Any] = {"transaction_type": "refund"}
        self._add_authorization_info(params, authorization)
        self._add_amount(params, money if money is not None else self._amount_from_authorization(authorization), options)
        self._add_soft_descriptors(params, options)
        self._add_invoice(params, options)
        return self._commit(params, options)

    def credit(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        params: Dict[str, Any] = {"transaction_type": "refund"}
        self._add_amount(params, money, options)
        self._add_payment_method(params, payment, options)
        self._add_soft_descriptors(params, options)
        self._add_invoice(params, options)
        return self._commit(params, options)

    def store(self, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        params: Dict[str, Any] = {
            "transaction_type": "store",
            "apikey": self.options["apikey"],
            "ta_token": options.get("ta_token"),
            "type": "FDToken",
            "credit_card": self._card_data(payment, options),
            "auth": "false",
        }
        return self._commit(params, options)

    def void(self, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        params: Dict[str, Any] = {"transaction_type": "void"}
        self._add_authorization_info(params, authorization, options)
        self._add_amount(params, self._amount_from_authorization(authorization), options)
        return self._commit(params, options)

    def verify(self, payment: Any, options: Optional[Dict[str, Any]] = None):
        options = options or {}
        return self.verify_with_void(
            lambda: self.authorize(0, payment, options),
            lambda authorization: self.void(authorization, options),
        )

    def supports_scrubbing(self) -> bool:
        return True

    def scrub(self, transcript: str) -> str:
        rules = (
            (r"(Token: )(\w|-)+", r"\1[FILTERED]"),
            (r"(Apikey: )(\w|-)+", r"\1[FILTERED]"),
            (r'(\\?"card_number\\?":\\?")\d+', r"\1[FILTERED]"),
            (r'(\\?"cvv\\?":\\?")\d+', r"\1[FILTERED]"),
            (r'(\\?"cvv\\?":\\?)\d+', r"\1[FILTERED]"),
            (r'(\\?"account_number\\?":\\?")\d+', r"\1[FILTERED]"),
            (r'(\\?"routing_number\\?":\\?")\d+', r"\1[FILTERED]"),
            (r"(\\?card_number=)\d+(&?)", r"\1[FILTERED]"),
            (r"(\\?cvv=)\d+(&?)", r"\1[FILTERED]"),
            (r"(\\?apikey=)\w+(&?)", r"\1[FILTERED]"),
            (r'(\\?"credit_card\.card_number\\?":)(\\?"[^"]+\\?")', r"\1[FILTERED]"),
            (r'(\\?"credit_card\.cvv\\?":)(\\?"[^"]+\\?")', r"\1[FILTERED]"),
            (r'(\\?"apikey\\?":)(\\?"[^"]+\\?")', r"\1[FILTERED]"),
            (r'(\\?"cavv\\?":)(\\?"[^"]+\\?")', r"\1[FILTERED]"),
            (r'(\\?"xid\\?":)(\\?"[^"]+\\?")', r"\1[FILTERED]"),
        )
        for pattern, repl in rules:
            transcript = re.sub(pattern, repl, transcript)
        return transcript

    # ---- Request builders ----
    def _add_sale_fields(self, params: Dict[str, Any], money: int, payment: Any, options: Dict[str, Any]) -> None:
        self._add_invoice(params, options)
        if options.get("reversal_id"):
            params["reversal_id"] = options["reversal_id"]
        if options.get("customer_ref"):
            params["customer_ref"] = options["customer_ref"]
        if options.get("reference_3"):
            params["reference_3"] = options["reference_3"]
        self._add_payment_method(params, payment, options)
        self._add_address(params, options)
        self._add_amount(params, money, options)
        self._add_soft_descriptors(params, options)
        self._add_level2_data(params, options)
        self._add_stored_credentials(params, options)
        self._add_external_three_ds(params, payment, options)

    def _add_external_three_ds(self, params: Dict[str, Any], payment: Any, options: Dict[str, Any]) -> None:
        three_ds = options.get("three_d_secure")
        if not three_ds:
            return
        block = {
            "program_protocol": (three_ds.get("version") or "")[:1] or None,
            "directory_server_transaction_id": three_ds.get("ds_transaction_id"),
            "cardholder_name": payment.name,
            "card_number": payment.number,
            "exp_date": self._format_exp_date(payment.month, payment.year),
            "cvv": payment.verification_value,
            "xid": three_ds.get("acs_transaction_id"),
            "cavv": three_ds.get("cavv"),
            "wallet_provider_id": "NO_WALLET",
            "type": "D",
        }
        params["3DS"] = {k: v for k, v in block.items() if v is not None}
        params["eci_indicator"] = three_ds.get("eci")
        params["method"] = "3DS"

    def _add_invoice(self, params: Dict[str, Any], options: Dict[str, Any]) -> None:
        params["merchant_ref"] = options.get("order_id")

    def _amount_from_authorization(self, authorization: str) -> int:
        tail = authorization.split("|")[-1]
        return int(tail) if tail.isdigit() else 0

    def _add_authorization_info(self, params: Dict[str, Any], authorization: str,
                                options: Optional[Dict[str, Any]] = None) -> None:
        options = options or {}
        parts = authorization.split("|") + ["", "", ""]
        transaction_id, transaction_tag, method = parts[0], parts[1], parts[2]
        # после token / 3DS follow-up операции идут как credit_card
        params["method"] = "credit_card" if method in ("token", "3DS") else method
        if options.get("reversal_id"):
            params["reversal_id"] = options["reversal_id"]
        else:
            params["transaction_id"] = transaction_id
            params["transaction_tag"] = transaction_tag

    def _add_payment_method(self, params: Dict[str, Any], payment: Any, options: Dict[str, Any]) -> None:
        if isinstance(payment, Check):
            self._add_echeck(params, payment, options)
        elif isinstance(payment, str):
            self._add_token(params, payment, options)
        elif isinstance(payment, NetworkTokenizationCreditCard):
            self._add_network_tokenization(params, payment, options)
        else:
            params["method"] = "credit_card"
            params["credit_card"] = self._card_data(payment, options)

    def _add_echeck(self, params: Dict[str, Any], echeck: Check, options: Dict[str, Any]) -> None:
        tele_check = {
            "check_number": echeck.number or "001",
            "check_type": "P",
            "routing_number": echeck.routing_number,
            "account_number": echeck.account_number,
            "accountholder_name": self._name_from_payment_method(echeck),
        }
        for key in ("customer_id_type", "customer_id_number", "client_email"):
            if options.get(key):
                tele_check[key] = options[key]
        params["method"] = "tele_check"
        params["tele_check"] = tele_check

    def _add_token(self, params: Dict[str, Any], payment: str, options: Dict[str, Any]) -> None:
        # токен из store: "type|cardholder_name|exp_date|value"
        parts = payment.split("|") + [None, None, None]
        token_data = {
            "type": parts[0],
            "cardholder_name": parts[1],
            "value": parts[3],
            "exp_date": parts[2],
        }
        if options.get("cvv"):
            token_data["cvv"] = options["cvv"]
        params["method"] = "token"
        params["token"] = {"token_type": "FDToken", "token_data": token_data}

    def _card_data(self, payment: Any, options: Dict[str, Any]) -> Dict[str, Any]:
        card = {
            "type": CREDIT_CARD_BRAND.get(payment.brand),
            "cardholder_name": self._name_from_payment_method(payment) or self._name_from_address(options),
            "card_number": payment.number,
            "exp_date": self._format_exp_date(payment.month, payment.year),
        }
        if payment.verification_value:
            card["cvv"] = payment.verification_value
        return card

    def _add_network_tokenization(self, params: Dict[str, Any], payment: NetworkTokenizationCreditCard,
                                  options: Dict[str, Any]) -> None:
        cryptogram = payment.payment_cryptogram or ""
        nt_card = {
            "type": "D",
            "cardholder_name": self._name_from_payment_method(payment) or self._name_from_address(options),
            "card_number": payment.number,
            "exp_date": self._format_exp_date(payment.month, payment.year),
            "cvv": payment.verification_value,
        }
        if cryptogram and "american_express" not in (payment.brand or ""):
            nt_card["xid"] = cryptogram
        if cryptogram:
            nt_card["cavv"] = cryptogram
        nt_card["wallet_provider_id"] = "APPLE_PAY"

        params["3DS"] = nt_card
        params["method"] = "3DS"
        params["eci_indicator"] = "5" if payment.eci is None else payment.eci

    def _format_exp_date(self, month: int, year: int) -> str:
        return f"{int(month) % 100:02d}{int(year) % 100:02d}"

    def _name_from_address(self, options: Dict[str, Any]) -> Optional[str]:
        address = options.get("billing_address")
        if not address:
            return None
        return address.get("name") or None

    def _name_from_payment_method(self, payment: Any) -> Optional[str]:
        if not (payment.first_name and payment.last_name):
            return None
        return f"{payment.first_name} {payment.last_name}"

    def _add_address(self, params: Dict[str, Any], options: Dict[str, Any]) -> None:
        address = options.get("billing_address")
        if not address:
            return
        billing_address = {}
        for target, source in (("street", "address1"), ("city", "city"), ("state_province", "state"),
                               ("zip_postal_code", "zip"), ("country", "country")):
            if address.get(source):
                billing_address[target] = address[source]
        params["billing_address"] = billing_address

    def _add_amount(self, params: Dict[str, Any], money: int, options: Dict[str, Any]) -> None:
        params["currency_code"] = (options.get("currency") or self.default_currency).upper()
        params["amount"] = self.amount(money)

    def _add_soft_descriptors(self, params: Dict[str, Any], options: Dict[str, Any]) -> None:
        if options.get("soft_descriptors"):
            params["soft_descriptors"] = options["soft_descriptors"]

    def _add_level2_data(self, params: Dict[str, Any], options: Dict[str, Any]) -> None:
        level2 = options.get("level2")
        if not level2:
            return
        params["level2"] = {"customer_ref": level2.get("customer_ref")}

    def _add_stored_credentials(self, params: Dict[str, Any], options: Dict[str, Any]) -> None:
        stored = options.get("stored_credential")
        if not (options.get("sequence") or stored):
            return
        stored = stored or {}
        block: Dict[str, Any] = {}
        original_id = options.get("cardbrand_original_transaction_id") or stored.get("network_transaction_id")
        if original_id:
            block["cardbrand_original_transaction_id"] = original_id
        initiator = options.get("initiator") or (stored["initiator"].upper() if stored.get("initiator") else None)
        if initiator:
            block["initiator"] = initiator
        block["sequence"] = options.get("sequence") or ("FIRST" if stored.get("initial_transaction") else "SUBSEQUENT")
        block["is_scheduled"] = options.get("is_scheduled") or ("true" if stored.get("reason_type") == "recurring" else "false")
        if options.get("auth_type_override"):
            block["auth_type_override"] = options["auth_type_override"]
        params["stored_credentials"] = block

    # ---- Commit ----
    def _base_url(self, options: Dict[str, Any]) -> str:
        if options.get("integration"):
            return self.integration_url
        return self.url()

    def _endpoint(self, params: Dict[str, Any]) -> str:
        return "/transactions/tokens" if params["transaction_type"] == "store" else "/transactions"

    def _generate_hmac(self, nonce: str, timestamp: str, payload: str) -> str:
        message = "".join([self.options["apikey"], nonce, timestamp, self.options["token"], payload])
        return b64(hmac_sha256_hex(self.options["apisecret"], message.encode("utf-8")))

    def _headers(self, payload: str) -> Dict[str, str]:
        nonce = str(secrets.randbelow(10_000_000_000))
        timestamp = str(int(time.time() * 1000))
        return {
            "Content-Type": "application/json",
            "apikey": self.options["apikey"],
            "token": self.options["token"],
            "nonce": nonce,
            "timestamp": timestamp,
            "Authorization": self._generate_hmac(nonce, timestamp, payload),
        }

    def _commit(self, params: Dict[str, Any], options: Dict[str, Any]) -> Response:
        url = self._base_url(options) + self._endpoint(params)
        transaction_id = params.pop("transaction_id", None)
        if transaction_id:
            url = f"{url}/{transaction_id.replace(' ', '')}"

        body = json.dumps(params, separators=(",", ":"))
        try:
            raw = self.ssl_post(url, body, self._headers(body))
            response = self._parse_or_error(raw)
        except ResponseError as e:
            response = self._parse_or_error(e.body)
        except httpx.TransportError as e:
            return self.connection_failure(e)

        success = self._success_from(response)
        return Response(
            success=success,
            message=self._message_from(response, success),
            params=response,
            test=self.test,
            authorization=self._authorization_from(params, response),
            avs_result={"code": response.get("avs")},
            cvv_result=response.get("cvv2"),
            error_code=None if success else self._error_code_from(response),
        )

    def _parse_or_error(self, body: str) -> Dict[str, Any]:
        try:
            return json.loads(body)
        except ValueError:
            return {"error": f"Unable to parse response: {body!r}"}

    def _success_from(self, response: Dict[str, Any]) -> bool:
        if response.get("transaction_status"):
            return response["transaction_status"] == "approved"
        if response.get("results"):
            return response["results"].get("status") == "success"
        if response.get("status"):
            return response["status"] == "success"
        return False

    def _message_from(self, response: Dict[str, Any], success: bool) -> Optional[str]:
        if success and response.get("status"):
            return "Token successfully created."
        if success:
            return f"{response.get('gateway_message')} - {response.get('bank_message')}"
        if response.get("code") in ("401", "403"):
            return response.get("message")
        if "Error" in response:
            return response["Error"]["messages"][0]["description"]
        if "results" in response:
            return response["results"]["Error"]["messages"][0]["description"]
        if "error" in response:
            return response["error"]
        if "fault" in response:
            return (response["fault"] or {}).get("faultstring")
        return response.get("bank_message") or response.get("gateway_message") or "Failure to successfully create token."

    def _error_code_from(self, response: Dict[str, Any]) -> Optional[str]:
        if response.get("bank_resp_code") == "100":
            return None
        if response.get("bank_resp_code"):
            return response["bank_resp_code"]
        messages = (response.get("Error") or {}).get("messages") or []
        return ", ".join(m.get("code") for m in messages if m.get("code"))

    def _authorization_from(self, params: Dict[str, Any], response: Dict[str, Any]) -> Optional[str]:
        if params["transaction_type"] == "store":
            if not self._success_from(response):
                return None
            token = response["token"]
            return "|".join(str(token.get(k) or "") for k in ("type", "cardholder_name", "exp_date", "value"))
        transaction_id = (response.get("transaction_id") or "").replace(" ", "")
        amount = response.get("amount")
        return "|".join([
            transaction_id,
            str(response.get("transaction_tag") or ""),
            str(params.get("method") or ""),
            str(int(float(amount))) if amount not in (None, "") else "",
        ])
