from typing import Dict, Any, Optional
import re
import unicodedata
import xml.etree.ElementTree as ET
import httpx

from ..base import Gateway
from ...billing.credit_card import NetworkTokenizationCreditCard
from ...billing.response import Response, MultiResponse

API_VERSION = "9.3"

POST_HEADERS = {
    "MIME-Version": "1.1",
    "Content-Type": f"application/PTI{API_VERSION.replace('.', '')}",
    "Content-transfer-encoding": "text",
    "Request-number": "1",
    "Document-type": "Request",
    "Interface-Version": "Python|gateway_connect|Proprietary Gateway",
}

SUCCESS = "0"
APPROVED = "1"

APPROVED_RESP_CODES = (
    "00", "08", "11", "24", "26", "27", "28", "29", "31", "32", "34", "43", "44", "45",
    "46", "47", "48", "59", "61", "62", "63", "64", "65", "66", "67", "68", "69", "70",
    "71", "72", "73", "74", "75", "76", "77", "78", "79", "80", "81", "82", "83", "84",
    "85", "86", "87", "88", "89", "90", "E7",
)

CURRENCY_CODES = {
    "AUD": "036", "BRL": "986", "CAD": "124", "CLP": "152", "CZK": "203", "DKK": "208",
    "HKD": "344", "ICK": "352", "INR": "356", "JPY": "392", "KRW": "410", "MXN": "484",
    "NZD": "554", "NOK": "578", "SGD": "702", "SEK": "752", "CHF": "756", "GBP": "826",
    "USD": "840", "EUR": "978", "AED": "784",
}

CURRENCY_EXPONENTS = {"CLP": "0", "ICK": "0", "JPY": "0", "KRW": "0"}

MESSAGE_TYPES = {
    "authorize": "A",
    "purchase": "AC",
    "force_capture": "FR",
    "refund": "R",
}

# Safetech: GT выпускает токен по карте, UT списывает по токену
GET_TOKEN = "GT"
USE_TOKEN = "UT"

CARD_BRAND_CODES = {
    "visa": "VI",
    "master": "MC",
    "american_express": "AX",
    "discover": "DI",
    "diners_club": "DI",
    "jcb": "JC",
}

ACCOUNT_TYPES = {"savings": "S", "checking": "C"}

SOFT_DESCRIPTOR_FIELDS = (
    ("SDMerchantName", "merchant_name"),
    ("SDProductDescription", "product_description"),
    ("SDMerchantCity", "merchant_city"),
    ("SDMerchantPhone", "merchant_phone"),
    ("SDMerchantURL", "merchant_url"),
    ("SDMerchantEmail", "merchant_email"),
)

SENSITIVE_FIELDS = ("account_num", "cc_account_num")

SCRUBBED_TAGS = (
    "OrbitalConnectionUsername", "OrbitalConnectionPassword", "AccountNum", "CCAccountNum",
    "CardSecVal", "MerchantID", "CustomerMerchantID", "CheckDDA", "BCRtNum", "DigitalTokenCryptogram",
)

AVS_COUNTRIES = ("US", "CA", "GB", "UK")


def _sub(parent: ET.Element, tag: str, text: Any = None) -> ET.Element:
    el = ET.SubElement(parent, tag)
    if text is not None:
        el.text = str(text)
    return el


def _underscore(name: str) -> str:
    name = re.sub(r"([A-Z\d]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return name.lower()


def _clean_text(value: Optional[str], limit: int) -> Optional[str]:
    """ASCII без диакритики и спецсимволов, обрезка до limit."""
    if not value:
        return None
    ascii_only = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9 ,.'&#/-]", "", ascii_only)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned[:limit].strip() or None


def _format_order_id(order_id: Any) -> str:
    value = str(order_id or "").replace(".", "-")
    value = re.sub(r"[^,$@&\- \w]", "", value).lstrip()
    return value[:22]


class OrbitalGateway(Gateway):
    """
    Chase Paymentech Orbital, XML (PTI) поверх HTTPS POST:
      - NewOrder        (A / AC / FR / R: authorize, purchase, force capture eCheck, refund, credit)
      - MarkForCapture  (capture)
      - Reversal        (void)
      - Profile         (store / unstore, CustomerRefNum)
    authorization = TxRefNum;OrderID
    С use_safetech_token=True store выпускает токен Safetech (TokenTxnType GT),
    authorization = CardBrand;SafetechToken;Exp, списание по нему идёт с TokenTxnType UT.
    """

    name = "orbital"
    display_name = "Orbital Paymentech"
    homepage_url = "http://chasepaymentech.com/"
    test_url = "https://orbitalvar1.chasepaymentech.com/authorize"
    test_url_secondary = "https://orbitalvar2.chasepaymentech.com/authorize"
    live_url = "https://orbital1.chasepaymentech.com/authorize"
    live_url_secondary = "https://orbital2.chasepaymentech.com/authorize"

    supported_countries = ("US", "CA")
    supported_cardtypes = ("visa", "master", "american_express", "discover", "diners_club", "jcb")
    default_currency = "USD"
    money_format = "cents"

    default_bin = "000001"
    default_terminal_id = "001"

    settings_credentials = {
        "login": "ORBITAL_LOGIN",
        "password": "ORBITAL_PASSWORD",
        "merchant_id": "ORBITAL_MERCHANT_ID",
    }

    def __init__(self, **options):
        super().__init__(**options)
        self.requires(self.options, "login", "password", "merchant_id")

    # ---- Adapter API ----
    def authorize(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        # eCheck с force_capture проводится только как FR
        if self._force_capture_with_echeck(payment, options):
            return self.purchase(money, payment, options)
        order = self._build_new_order("authorize", money, payment, options)
        return self._commit(order, "authorize", options)

    def purchase(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        action = "force_capture" if self._force_capture_with_echeck(payment, options) else "purchase"
        order = self._build_new_order(action, money, payment, options)
        return self._commit(order, "purchase", options)

    def capture(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        tx_ref_num, order_id = self._split_authorization(authorization)
        root = ET.Element("Request")
        capture = _sub(root, "MarkForCapture")
        self._add_credentials(capture)
        _sub(capture, "OrderID", _format_order_id(order_id or options.get("order_id")))
        _sub(capture, "Amount", self.localized_amount(money, self.currency(options)))
        self._add_level_2_tax(capture, options)
        _sub(capture, "BIN", self._bin())
        _sub(capture, "MerchantID", self.options["merchant_id"])
        _sub(capture, "TerminalID", self._terminal_id())
        _sub(capture, "TxRefNum", tx_ref_num)
        self._add_level_2_purchase(capture, options)
        return self._commit(root, "capture", options)

    def refund(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        tx_ref_num, order_id = self._split_authorization(authorization)
        payment = options.get("payment_method")
        order = self._build_new_order(
            "refund", money, payment, {**options, "order_id": order_id or options.get("order_id")},
            tx_ref_num=None if payment is not None else tx_ref_num,
        )
        return self._commit(order, "refund", options)

    def credit(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        order = self._build_new_order("refund", money, payment, options)
        return self._commit(order, "refund", options)

    def void(self, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        tx_ref_num, order_id = self._split_authorization(authorization)
        root = ET.Element("Request")
        reversal = _sub(root, "Reversal")
        self._add_credentials(reversal)
        _sub(reversal, "TxRefNum", tx_ref_num)
        _sub(reversal, "TxRefIdx", options.get("transaction_index"))
        if options.get("amount") is not None:
            _sub(reversal, "AdjustedAmt", options["amount"])
        _sub(reversal, "OrderID", _format_order_id(order_id or options.get("order_id")))
        _sub(reversal, "BIN", self._bin())
        _sub(reversal, "MerchantID", self.options["merchant_id"])
        _sub(reversal, "TerminalID", self._terminal_id())
        return self._commit(root, "void", options)

    def verify(self, payment: Any, options: Optional[Dict[str, Any]] = None):
        options = options or {}
        # visa / master / amex принимают нулевую авторизацию, её не нужно отменять
        if self.card_brand(payment) in ("visa", "master", "american_express"):
            multi = MultiResponse(use_first_response=True)
            multi.process(lambda: self.authorize(0, payment, options))
            return multi
        return self.verify_with_void(
            lambda: self.authorize(100, payment, options),
            lambda authorization: self.void(authorization, options),
        )

    def store(self, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        if not self.options.get("use_safetech_token"):
            return self._commit(self._build_profile("C", payment, options), "store", options)

        response = self.authorize(0, payment, {**options, "store": True})
        token = response.params.get("safetech_token")
        if not response.success or not token:
            return response
        brand = response.params.get("card_brand") or CARD_BRAND_CODES.get(self.card_brand(payment))
        authorization = ";".join([brand or "", token, self._expiry_date(payment)])
        return response.model_copy(update={"authorization": authorization})

    def unstore(self, customer_ref_num: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        return self._commit(
            self._build_profile("D", None, {**options, "customer_ref_num": customer_ref_num}), "unstore", options
        )

    def supports_scrubbing(self) -> bool:
        return True

    def scrub(self, transcript: str) -> str:
        for tag in SCRUBBED_TAGS:
            transcript = re.sub(rf"(<{tag}>).+?(</{tag}>)", r"\1[FILTERED]\2", transcript)
        return transcript

    # ---- Request builders ----
    def _bin(self) -> str:
        return str(self.options.get("bin") or self.default_bin)

    def _terminal_id(self) -> str:
        return str(self.options.get("terminal_id") or self.default_terminal_id)

    def _add_credentials(self, parent: ET.Element) -> None:
        _sub(parent, "OrbitalConnectionUsername", self.options["login"])
        _sub(parent, "OrbitalConnectionPassword", self.options["password"])

    def _add_currency_fields(self, parent: ET.Element, currency: str) -> None:
        _sub(parent, "CurrencyCode", CURRENCY_CODES.get(currency, CURRENCY_CODES["USD"]))
        _sub(parent, "CurrencyExponent", CURRENCY_EXPONENTS.get(currency, "2"))

    def _build_new_order(self, action: str, money: Optional[int], payment: Any, options: Dict[str, Any],
                         tx_ref_num: Optional[str] = None) -> ET.Element:
        root = ET.Element("Request")
        order = _sub(root, "NewOrder")
        self._add_credentials(order)
        _sub(order, "IndustryType", options.get("industry_type") or "EC")
        _sub(order, "MessageType", MESSAGE_TYPES[action])
        _sub(order, "BIN", self._bin())
        _sub(order, "MerchantID", self.options["merchant_id"])
        _sub(order, "TerminalID", self._terminal_id())

        currency = self.currency(options) or "USD"
        if payment is not None and not isinstance(payment, str) and payment.type() == "check":
            self._add_echeck(order, payment, currency, options)
        else:
            self._add_credit_card(order, payment, currency, options)

        self._add_avs_details(order, payment, options)
        safetech = self._safetech_token(payment, options)
        if isinstance(payment, str) and safetech is None:
            _sub(order, "CustomerRefNum", payment)
        if isinstance(payment, NetworkTokenizationCreditCard) and payment.eci:
            _sub(order, "AuthenticationECIInd", payment.eci)

        _sub(order, "OrderID", _format_order_id(options.get("order_id")))
        _sub(order, "Amount", self.localized_amount(money, currency))
        if options.get("comments"):
            _sub(order, "Comments", options["comments"])
        self._add_level_2_tax(order, options)
        self._add_level_2_purchase(order, options)
        self._add_soft_descriptors(order, options.get("soft_descriptors"))
        if tx_ref_num:
            _sub(order, "TxRefNum", tx_ref_num)
        if isinstance(payment, NetworkTokenizationCreditCard):
            if payment.payment_cryptogram:
                _sub(order, "DigitalTokenCryptogram", payment.payment_cryptogram)
            _sub(order, "DPANInd", "Y")
        token_txn_type = self._token_txn_type(action, payment, safetech, options)
        if token_txn_type:
            _sub(order, "TokenTxnType", token_txn_type)
        self._add_stored_credentials(order, options)
        return root

    @staticmethod
    def _force_capture_with_echeck(payment: Any, options: Dict[str, Any]) -> bool:
        if not options.get("force_capture"):
            return False
        return payment is not None and not isinstance(payment, str) and payment.type() == "check"

    @staticmethod
    def _safetech_token(payment: Any, options: Dict[str, Any]) -> Optional[tuple]:
        """(CardBrand, token, Exp) для оплаты по токену Safetech, иначе None."""
        if isinstance(payment, str) and payment.count(";") == 2:
            brand, token, exp = payment.split(";")
            return options.get("card_brand") or brand, token, exp
        if payment is None and options.get("card_brand"):
            return options["card_brand"], None, None
        return None

    @staticmethod
    def _token_txn_type(action: str, payment: Any, safetech: Optional[tuple], options: Dict[str, Any]) -> Optional[str]:
        if action == "refund":
            return None
        if safetech is not None:
            return USE_TOKEN
        if options.get("store") and payment is not None and not isinstance(payment, str) and payment.type() != "check":
            return GET_TOKEN
        return None

    @staticmethod
    def _expiry_date(card: Any) -> str:
        return f"{int(card.month):02d}{int(card.year) % 100:02d}"

    def _add_credit_card(self, order: ET.Element, payment: Any, currency: str, options: Dict[str, Any]) -> None:
        safetech = self._safetech_token(payment, options)
        if safetech is not None:
            brand, token, exp = safetech
            _sub(order, "CardBrand", brand)
            _sub(order, "AccountNum", token)
            _sub(order, "Exp", options.get("override_exp_date") or exp)
            self._add_currency_fields(order, currency)
            return

        card = payment if payment is not None and not isinstance(payment, str) else None
        _sub(order, "AccountNum", card.number if card else None)
        exp = options.get("override_exp_date")
        if not exp and card and card.month and card.year:
            exp = self._expiry_date(card)
        _sub(order, "Exp", exp)
        self._add_currency_fields(order, currency)
        if card and card.verification_value:
            if card.brand in ("visa", "master", "discover") and self._bin() == self.default_bin:
                _sub(order, "CardSecValInd", "1")
            _sub(order, "CardSecVal", card.verification_value)

    def _add_echeck(self, order: ET.Element, check: Any, currency: str, options: Dict[str, Any]) -> None:
        _sub(order, "CardBrand", "EC")
        self._add_currency_fields(order, currency)
        _sub(order, "BCRtNum", check.routing_number)
        _sub(order, "CheckDDA", check.account_number)
        account_type = "X" if check.account_holder_type == "business" else ACCOUNT_TYPES.get(check.account_type)
        _sub(order, "BankAccountType", account_type)
        if options.get("auth_method"):
            _sub(order, "ECPAuthMethod", options["auth_method"])
        _sub(order, "BankPmtDelv", options.get("payment_delivery") or "B")
        if options.get("action_code"):
            _sub(order, "ECPActionCode", options["action_code"])

    def _add_avs_details(self, order: ET.Element, payment: Any, options: Dict[str, Any]) -> None:
        address = options.get("billing_address") or options.get("address") or {}
        if address:
            country = (address.get("country") or "").upper()
            _sub(order, "AVSzip", _clean_text(str(address.get("zip") or ""), 10))
            _sub(order, "AVSaddress1", _clean_text(address.get("address1"), 30))
            _sub(order, "AVSaddress2", _clean_text(address.get("address2"), 30))
            _sub(order, "AVScity", _clean_text(address.get("city"), 20))
            _sub(order, "AVSstate", address.get("state") if country in ("US", "CA") else None)
            _sub(order, "AVSphoneNum", re.sub(r"\D", "", address.get("phone") or "")[:14] or None)
        payment_name = getattr(payment, "name", None) if payment is not None and not isinstance(payment, str) else None
        name = payment_name or address.get("name")
        if name:
            _sub(order, "AVSname", _clean_text(name, 30))
        if address and (address.get("country") or "").upper() in AVS_COUNTRIES:
            _sub(order, "AVScountryCode", address["country"].upper())

    def _add_level_2_tax(self, parent: ET.Element, options: Dict[str, Any]) -> None:
        level_2 = options.get("level_2_data")
        if not level_2:
            return
        if level_2.get("tax_indicator") is not None:
            _sub(parent, "TaxInd", level_2["tax_indicator"])
        if level_2.get("tax") is not None:
            _sub(parent, "Tax", level_2["tax"])

    def _add_level_2_purchase(self, parent: ET.Element, options: Dict[str, Any]) -> None:
        level_2 = options.get("level_2_data")
        if not level_2:
            return
        fields = (
            ("PCOrderNum", level_2.get("purchase_order")),
            ("PCDestZip", level_2.get("zip")),
            ("PCDestName", _clean_text(level_2.get("name"), 30)),
            ("PCDestAddress1", _clean_text(level_2.get("address1"), 30)),
            ("PCDestAddress2", _clean_text(level_2.get("address2"), 30)),
            ("PCDestCity", _clean_text(level_2.get("city"), 20)),
            ("PCDestState", level_2.get("state")),
        )
        for tag, value in fields:
            if value:
                _sub(parent, tag, value)

    @staticmethod
    def _add_soft_descriptors(order: ET.Element, descriptors: Optional[Dict[str, Any]]) -> None:
        if not descriptors:
            return
        for tag, key in SOFT_DESCRIPTOR_FIELDS:
            if descriptors.get(key):
                _sub(order, tag, descriptors[key])

    def _add_stored_credentials(self, order: ET.Element, options: Dict[str, Any]) -> None:
        stored = options.get("stored_credential") or {}
        has_stored = any(v is not None for v in stored.values())
        if options.get("mit_stored_credential_ind") != "Y" and not has_stored:
            return
        msg_type = self._mit_msg_type(options)
        if msg_type:
            _sub(order, "MITMsgType", msg_type)
        _sub(order, "MITStoredCredentialInd", "Y")
        if options.get("mit_submitted_transaction_id"):
            _sub(order, "MITSubmittedTransactionID", options["mit_submitted_transaction_id"])
        elif stored.get("network_transaction_id") and stored.get("initiator") == "merchant":
            _sub(order, "MITSubmittedTransactionID", stored["network_transaction_id"])

    @staticmethod
    def _mit_msg_type(options: Dict[str, Any]) -> Optional[str]:
        if options.get("mit_msg_type"):
            return options["mit_msg_type"]
        stored = options.get("stored_credential") or {}
        if stored.get("initial_transaction"):
            return "CSTO"
        initiator = {"cardholder": "C", "customer": "C", "merchant": "M"}.get(stored.get("initiator"))
        reason = {"recurring": "REC", "installment": "INS", "unscheduled": "USE"}.get(stored.get("reason_type"))
        if not initiator or not reason:
            return None
        return f"{initiator}{reason}"

    def _build_profile(self, action: str, payment: Any, options: Dict[str, Any]) -> ET.Element:
        root = ET.Element("Request")
        profile = _sub(root, "Profile")
        self._add_credentials(profile)
        _sub(profile, "CustomerBin", self._bin())
        _sub(profile, "CustomerMerchantID", self.options["merchant_id"])

        address = options.get("billing_address") or options.get("address") or {}
        if action == "C":
            name = getattr(payment, "name", None) or address.get("name")
            _sub(profile, "CustomerName", _clean_text(name, 30))
        if options.get("customer_ref_num"):
            _sub(profile, "CustomerRefNum", options["customer_ref_num"])
        if action == "C" and address:
            _sub(profile, "CustomerAddress1", _clean_text(address.get("address1"), 30))
            _sub(profile, "CustomerAddress2", _clean_text(address.get("address2"), 30))
            _sub(profile, "CustomerCity", _clean_text(address.get("city"), 20))
            _sub(profile, "CustomerState", address.get("state"))
            _sub(profile, "CustomerZIP", address.get("zip"))
            if options.get("email"):
                _sub(profile, "CustomerEmail", options["email"])
            _sub(profile, "CustomerPhone", re.sub(r"\D", "", address.get("phone") or "")[:14] or None)
            _sub(profile, "CustomerCountryCode", (address.get("country") or "").upper() or None)
        _sub(profile, "CustomerProfileAction", action)
        if action == "C":
            _sub(profile, "CustomerProfileOrderOverrideInd", "NO")
            if not options.get("customer_ref_num"):
                _sub(profile, "CustomerProfileFromOrderInd", "A")
            _sub(profile, "CustomerAccountType", "CC")
            _sub(profile, "CCAccountNum", payment.number)
            _sub(profile, "CCExpireDate", self._expiry_date(payment))
        return root

    @staticmethod
    def _split_authorization(authorization: Optional[str]) -> tuple:
        tx_ref_num, _, order_id = (authorization or "").partition(";")
        return tx_ref_num, order_id

    # ---- Commit ----
    def _headers(self, options: Dict[str, Any]) -> Dict[str, str]:
        headers = dict(POST_HEADERS)
        if self._retry_enabled(options):
            headers["Trace-number"] = str(options["trace_number"])
            headers["Merchant-Id"] = str(self.options["merchant_id"])
        return headers

    def _retry_enabled(self, options: Dict[str, Any]) -> bool:
        return bool((self.options.get("retry_logic") or options.get("retry_logic")) and options.get("trace_number"))

    def _remote_url(self, secondary: bool = False) -> str:
        if self.test:
            return self.test_url_secondary if secondary else self.test_url
        return self.live_url_secondary if secondary else self.live_url

    def _post(self, body: str, options: Dict[str, Any]) -> str:
        headers = self._headers(options)
        retry = self._retry_enabled(options)
        try:
            return self.ssl_post(self._remote_url(), body, headers, retry=retry)
        except httpx.ConnectError as e:
            # основной узел недоступен: запрос не дошёл, повторяем на резервном
            self.logger.warning("gateway_failover", gateway=self.name, error=str(e))
            return self.ssl_post(self._remote_url(secondary=True), body, headers, retry=retry)

    def _commit(self, root: ET.Element, message_type: str, options: Dict[str, Any]) -> Response:
        body = '<?xml version="1.0" encoding="UTF-8"?>' + ET.tostring(root, encoding="unicode")
        try:
            raw = self._post(body, options)
        except httpx.TransportError as e:
            return self.connection_failure(e)
        try:
            response = self._parse(raw)
        except ET.ParseError:
            self.logger.warning("gateway_parse_error", gateway=self.name)
            return Response(
                success=False,
                message=f"Unable to parse response: {raw!r}",
                params={"raw_response": raw},
                test=self.test,
            )

        if message_type in ("store", "unstore"):
            authorization = response.get("customer_ref_num")
        else:
            authorization = ";".join([response.get("tx_ref_num") or "", response.get("order_id") or ""])
        return Response(
            success=self._success_from(response, message_type),
            message=response.get("resp_msg") or response.get("status_msg") or response.get("customer_profile_message"),
            params=response,
            authorization=authorization,
            test=self.test,
            avs_result={"code": response.get("avs_resp_code")},
            cvv_result=response.get("cvv2_resp_code"),
            network_transaction_id=response.get("mit_received_transaction_id"),
        )

    @staticmethod
    def _success_from(response: Dict[str, Any], message_type: str) -> bool:
        if message_type in ("void", "capture"):
            return response.get("proc_status") == SUCCESS
        if message_type == "refund":
            return response.get("proc_status") == SUCCESS and response.get("approval_status") == APPROVED
        if response.get("customer_profile_action"):
            return response.get("profile_proc_status") == SUCCESS
        return response.get("proc_status") == SUCCESS and response.get("resp_code") in APPROVED_RESP_CODES

    @staticmethod
    def _parse(data: str) -> Dict[str, Any]:
        root = ET.fromstring((data or "").strip())
        response: Dict[str, Any] = {}
        container = root if root.tag in ("Response", "ErrorResponse") else (
            root.find(".//Response") if root.find(".//Response") is not None else root.find(".//ErrorResponse")
        )
        if container is None:
            return response

        def walk(node: ET.Element) -> None:
            if len(node):
                for child in node:
                    walk(child)
                return
            text = node.text.strip() if node.text else None
            response[_underscore(node.tag)] = text or None

        for node in container:
            walk(node)
        for key in SENSITIVE_FIELDS:
            response.pop(key, None)
        return response
