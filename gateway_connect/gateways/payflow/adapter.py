from typing import Dict, Any, Optional
import json
import platform
import re
import uuid
import warnings
import xml.etree.ElementTree as ET
import httpx

from ..base import Gateway
from ...billing.response import Response

XMLNS = "http://www.paypal.com/XMLPay"

TRANSACTIONS = {
    "purchase": "Sale",
    "authorization": "Authorization",
    "capture": "Capture",
    "void": "Void",
    "credit": "Credit",
}

CARD_MAPPING = {
    "visa": "Visa",
    "master": "MasterCard",
    "discover": "Discover",
    "american_express": "Amex",
    "jcb": "JCB",
    "diners_club": "DinersClub",
}

CVV_CODE = {
    "Match": "M",
    "No Match": "N",
    "Service Not Available": "U",
    "Service not Requested": "P",
}

CREDIT_DEPRECATION_MESSAGE = (
    "Making credits by transaction reference has been deprecated. Use refund instead."
)


def _sub(parent: ET.Element, tag: str, text: Any = None, **attrs: str) -> ET.Element:
    el = ET.SubElement(parent, tag, attrs)
    if text is not None:
        el.text = str(text)
    return el


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _underscore(name: str) -> str:
    # PNRef -> pn_ref, IAVSResult -> iavs_result, TransactionTime -> transaction_time
    name = re.sub(r"([A-Z\d]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return name.lower()


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


class PayflowGateway(Gateway):
    """
    PayPal Payflow Pro, XMLPay 2.1 поверх HTTPS POST:
      - Sale / Authorization (карта, ACH или ORIGID-ссылка)
      - Capture / Void / Credit по PNRef
    authorization = PNRef
    """

    name = "payflow"
    display_name = "PayPal Payflow Pro"
    homepage_url = "https://www.paypal.com/cgi-bin/webscr?cmd=_payflow-pro-overview-outside"
    test_url = "https://pilot-payflowpro.paypal.com"
    live_url = "https://payflowpro.paypal.com"

    supported_countries = ("US", "CA", "NZ", "AU")
    supported_cardtypes = ("visa", "master", "american_express", "jcb", "discover", "diners_club")
    default_currency = "USD"
    money_format = "dollars"

    partner = "PayPal"
    timeout = 60
    use_paypal_nvp = False
    # X-VPS-Request-ID делает повтор идемпотентным
    retry_safe = True

    settings_credentials = {
        "login": "PAYFLOW_LOGIN",
        "password": "PAYFLOW_PASSWORD",
        "partner": "PAYFLOW_PARTNER",
    }

    def __init__(self, **options):
        super().__init__(**options)
        self.requires(self.options, "login", "password")
        if _blank(self.options.get("partner")):
            self.options["partner"] = self.partner

    # ---- Adapter API ----
    def authorize(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        return self._commit(self._build_sale_or_authorization_request("authorization", money, payment, options), options)

    def purchase(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        return self._commit(self._build_sale_or_authorization_request("purchase", money, payment, options), options)

    def capture(self, money: Optional[int], authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        return self._commit(self._build_reference_request("capture", money, authorization, options), options)

    def void(self, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        return self._commit(self._build_reference_request("void", None, authorization, options), options)

    def refund(self, money: Optional[int], reference: str, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        return self._commit(self._build_reference_request("credit", money, reference, options), options)

    def credit(self, money: int, funding_source: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        options = options or {}
        if isinstance(funding_source, str):
            warnings.warn(CREDIT_DEPRECATION_MESSAGE, DeprecationWarning, stacklevel=2)
            return self.refund(money, funding_source, options)
        if funding_source.type() == "check":
            return self._commit(self._build_check_request("credit", money, funding_source, options), options)
        return self._commit(self._build_credit_card_request("credit", money, funding_source, options), options)

    def verify(self, payment: Any, options: Optional[Dict[str, Any]] = None):
        options = options or {}
        return self.verify_with_void(
            lambda: self.authorize(100, payment, options),
            lambda authorization: self.void(authorization, options),
        )

    def store(self, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        raise NotImplementedError("Store is not supported on Payflow gateways")

    def supports_scrubbing(self) -> bool:
        return True

    def scrub(self, transcript: str) -> str:
        for tag in ("CardNum", "CVNum", "AcctNum", "Password"):
            transcript = re.sub(rf"(<{tag}>)[^<]+(<)", r"\1[FILTERED]\2", transcript, flags=re.IGNORECASE)
        return transcript

    # ---- Request builders ----
    def _build_sale_or_authorization_request(self, action: str, money: int, payment: Any,
                                             options: Dict[str, Any]) -> ET.Element:
        if isinstance(payment, str):
            return self._build_reference_sale_or_authorization_request(action, money, payment, options)
        if payment.type() == "check":
            return self._build_check_request(action, money, payment, options)
        return self._build_credit_card_request(action, money, payment, options)

    def _add_invoice_fields(self, invoice: ET.Element, options: Dict[str, Any], with_email: bool = False) -> None:
        if not _blank(options.get("ip")):
            _sub(invoice, "CustIP", options["ip"])
        if not _blank(options.get("order_id")):
            _sub(invoice, "InvNum", re.sub(r"[^\w.]", "", str(options["order_id"])))
        for tag, key in (("Description", "description"), ("OrderDesc", "order_desc"), ("Comment", "comment")):
            if not _blank(options.get(key)):
                _sub(invoice, tag, options[key])
        if not _blank(options.get("comment2")):
            _sub(invoice, "ExtData", Name="COMMENT2", Value=str(options["comment2"]))
        for tag, key in (("TaxAmt", "taxamt"), ("FreightAmt", "freightamt"),
                         ("DutyAmt", "dutyamt"), ("DiscountAmt", "discountamt")):
            if not _blank(options.get(key)):
                _sub(invoice, tag, options[key])
        if with_email and options.get("email") is not None:
            _sub(invoice, "EMail", options["email"])
        if not _blank(options.get("merch_descr")):
            _sub(invoice, "MerchDescr", options["merch_descr"])

        billing_address = options.get("billing_address") or options.get("address")
        if billing_address:
            self._add_address(invoice, "BillTo", billing_address, options)
        if options.get("shipping_address"):
            self._add_address(invoice, "ShipTo", options["shipping_address"], options)

    def _add_total(self, parent: ET.Element, money: Optional[int], options: Dict[str, Any]) -> None:
        currency = self.currency(options)
        _sub(parent, "TotalAmt", self.localized_amount(money, currency), Currency=currency)

    def _add_button_source(self, transaction: ET.Element) -> None:
        application_id = self.options.get("application_id")
        if not _blank(application_id):
            _sub(transaction, "ExtData", Name="BUTTONSOURCE", Value=str(application_id))

    def _build_reference_sale_or_authorization_request(self, action: str, money: int, reference: str,
                                                       options: Dict[str, Any]) -> ET.Element:
        transaction = ET.Element(TRANSACTIONS[action])
        pay_data = _sub(transaction, "PayData")
        invoice = _sub(pay_data, "Invoice")
        self._add_invoice_fields(invoice, options)
        self._add_total(invoice, money, options)
        card = _sub(_sub(pay_data, "Tender"), "Card")
        _sub(card, "ExtData", Name="ORIGID", Value=reference)
        self._add_button_source(transaction)
        return self._add_level_two_three_fields(transaction, options)

    def _build_credit_card_request(self, action: str, money: int, credit_card: Any,
                                   options: Dict[str, Any]) -> ET.Element:
        transaction = ET.Element(TRANSACTIONS[action])
        pay_data = _sub(transaction, "PayData")
        invoice = _sub(pay_data, "Invoice")
        self._add_invoice_fields(invoice, options, with_email=True)
        self._add_total(invoice, money, options)
        self._add_credit_card(_sub(pay_data, "Tender"), credit_card, options)
        self._add_three_d_secure_ext_data(pay_data, options.get("three_d_secure"))
        self._add_button_source(transaction)
        return self._add_level_two_three_fields(transaction, options)

    def _build_check_request(self, action: str, money: int, check: Any, options: Dict[str, Any]) -> ET.Element:
        transaction = ET.Element(TRANSACTIONS[action])
        pay_data = _sub(transaction, "PayData")
        invoice = _sub(pay_data, "Invoice")
        if not _blank(options.get("ip")):
            _sub(invoice, "CustIP", options["ip"])
        if not _blank(options.get("order_id")):
            _sub(invoice, "InvNum", re.sub(r"[^\w.]", "", str(options["order_id"])))
        for tag, key in (("Description", "description"), ("OrderDesc", "order_desc")):
            if not _blank(options.get(key)):
                _sub(invoice, tag, options[key])
        _sub(_sub(invoice, "BillTo"), "Name", check.name)
        self._add_total(invoice, money, options)
        ach = _sub(_sub(pay_data, "Tender"), "ACH")
        _sub(ach, "AcctType", "C" if check.account_type == "checking" else "S")
        _sub(ach, "AcctNum", check.account_number)
        _sub(ach, "ABA", check.routing_number)
        self._add_button_source(transaction)
        return self._add_level_two_three_fields(transaction, options)

    def _build_reference_request(self, action: str, money: Optional[int], authorization: str,
                                 options: Dict[str, Any]) -> ET.Element:
        transaction = ET.Element(TRANSACTIONS[action])
        _sub(transaction, "PNRef", authorization)
        if money is not None:
            invoice = _sub(transaction, "Invoice")
            self._add_total(invoice, money, options)
            if not _blank(options.get("description")):
                _sub(invoice, "Description", options["description"])
            if not _blank(options.get("mem1")):
                _sub(invoice, "Comment", options["mem1"])
            if not _blank(options.get("note")):
                _sub(invoice, "ExtData", Name="COMMENT2", Value=str(options["note"]))
        return transaction

    def _add_address(self, parent: ET.Element, tag: str, address: Dict[str, Any], options: Dict[str, Any]) -> None:
        node = _sub(parent, tag)
        if not _blank(address.get("name")):
            _sub(node, "Name", address["name"])
        if not _blank(options.get("email")):
            _sub(node, "EMail", options["email"])
        if not _blank(address.get("phone")):
            _sub(node, "Phone", address["phone"])
        if tag == "BillTo":
            if not _blank(options.get("customer")):
                _sub(node, "CustCode", options["customer"])
            if not _blank(options.get("po_number")):
                _sub(node, "PONum", options["po_number"])
        addr = _sub(node, "Address")
        for xml_tag, key in (("Street", "address1"), ("Street2", "address2"), ("City", "city")):
            if not _blank(address.get(key)):
                _sub(addr, xml_tag, address[key])
        _sub(addr, "State", "N/A" if _blank(address.get("state")) else address["state"])
        for xml_tag, key in (("Country", "country"), ("Zip", "zip")):
            if not _blank(address.get(key)):
                _sub(addr, xml_tag, address[key])

    def _add_credit_card(self, tender: ET.Element, credit_card: Any, options: Dict[str, Any]) -> None:
        card = _sub(tender, "Card")
        _sub(card, "CardType", CARD_MAPPING.get(self.card_brand(credit_card) or "", ""))
        _sub(card, "CardNum", credit_card.number)
        _sub(card, "ExpDate", f"{int(credit_card.year):04d}{int(credit_card.month):02d}")
        _sub(card, "NameOnCard", credit_card.first_name)
        if not _blank(credit_card.verification_value):
            _sub(card, "CVNum", credit_card.verification_value)
        self._add_stored_credential(card, options.get("stored_credential"))
        self._add_three_d_secure(card, options.get("three_d_secure"))
        _sub(card, "ExtData", Name="LASTNAME", Value=credit_card.last_name or "")

    def _add_stored_credential(self, card: ET.Element, stored_credential: Optional[Dict[str, Any]]) -> None:
        if not stored_credential:
            return
        _sub(card, "CardOnFile", self._card_on_file(stored_credential))
        if stored_credential.get("network_transaction_id"):
            _sub(card, "TxnId", stored_credential["network_transaction_id"])

    @staticmethod
    def _card_on_file(stored_credential: Dict[str, Any]) -> str:
        reason = {"recurring": "R", "unscheduled": "U"}.get(stored_credential.get("reason_type"), "")
        if stored_credential.get("initiator") == "cardholder":
            return "CITI" if stored_credential.get("initial_transaction") else f"CIT{reason}"
        return f"MIT{reason}"

    @staticmethod
    def _three_ds_version_2(three_d_secure: Dict[str, Any]) -> bool:
        return str(three_d_secure.get("version") or "").startswith("2")

    def _add_three_d_secure(self, card: ET.Element, three_d_secure: Optional[Dict[str, Any]]) -> None:
        if not three_d_secure:
            return
        result = _sub(card, "BuyerAuthResult")
        status = three_d_secure.get("authentication_response_status") or three_d_secure.get("directory_response_status")
        if not _blank(status):
            _sub(result, "Status", status)
        if self._three_ds_version_2(three_d_secure) and not _blank(three_d_secure.get("authentication_response_status")):
            _sub(result, "AuthenticationStatus", three_d_secure["authentication_response_status"])
        for tag, key in (("AuthenticationId", "authentication_id"), ("PAReq", "pareq"),
                         ("ACSUrl", "acs_url"), ("ECI", "eci"), ("CAVV", "cavv")):
            if not _blank(three_d_secure.get(key)):
                _sub(result, tag, three_d_secure[key])
        xid = three_d_secure.get("xid") or three_d_secure.get("cavv")
        if not _blank(xid):
            _sub(result, "XID", xid)
        if not _blank(three_d_secure.get("version")):
            _sub(result, "ThreeDSVersion", three_d_secure["version"])
        if not _blank(three_d_secure.get("ds_transaction_id")):
            _sub(result, "DSTransactionID", three_d_secure["ds_transaction_id"])

    def _add_three_d_secure_ext_data(self, pay_data: ET.Element, three_d_secure: Optional[Dict[str, Any]]) -> None:
        # 3DS 2.x через MPI дублируется в ExtData на уровне PayData
        if not three_d_secure or not self._three_ds_version_2(three_d_secure):
            return
        values = (
            ("AUTHENTICATION_STATUS", three_d_secure.get("authentication_response_status")),
            ("AUTHENTICATION_ID", three_d_secure.get("authentication_id")),
            ("ECI", three_d_secure.get("eci")),
            ("CAVV", three_d_secure.get("cavv")),
            ("XID", three_d_secure.get("xid") or three_d_secure.get("cavv")),
            ("THREEDSVERSION", three_d_secure.get("version")),
            ("DSTRANSACTIONID", three_d_secure.get("ds_transaction_id")),
        )
        for name, value in values:
            if not _blank(value):
                _sub(pay_data, "ExtData", Name=name, Value=str(value))

    def _add_level_two_three_fields(self, transaction: ET.Element, options: Dict[str, Any]) -> ET.Element:
        for key in ("level_two_fields", "level_three_fields"):
            if options.get(key):
                fields = json.loads(options[key]) if isinstance(options[key], str) else options[key]
                pay_data = transaction.find("PayData")
                self._merge_fields(transaction, transaction if pay_data is None else pay_data, fields)
        return transaction

    def _merge_fields(self, root: ET.Element, parent: ET.Element, fields: Dict[str, Any]) -> None:
        # {"Tender": {"ACH": {...}}}: существующие узлы дополняются, недостающие создаются
        for key, value in fields.items():
            if isinstance(value, dict):
                node = root.find(f".//{key}")
                if node is None:
                    node = _sub(parent, key)
                self._merge_fields(root, node, value)
            else:
                _sub(parent, key, value)

    def _build_request(self, transaction: ET.Element, options: Dict[str, Any]) -> str:
        request = ET.Element("XMLPayRequest", {"Timeout": str(self.timeout), "version": "2.1", "xmlns": XMLNS})
        data = _sub(request, "RequestData")
        _sub(data, "Vendor", self.options.get("vendor") or self.options["login"])
        _sub(data, "Partner", self.options["partner"])
        transactions = _sub(data, "Transactions")
        attrs = {} if _blank(options.get("customer")) else {"CustRef": str(options["customer"])}
        tx = _sub(transactions, "Transaction", **attrs)
        if not _blank(self.options.get("verbosity")):
            _sub(tx, "Verbosity", self.options["verbosity"])
        tx.append(transaction)
        user_pass = _sub(_sub(request, "RequestAuth"), "UserPass")
        _sub(user_pass, "User", self.options.get("user") or self.options["login"])
        _sub(user_pass, "Password", self.options["password"])
        return '<?xml version="1.0" encoding="UTF-8"?>' + ET.tostring(request, encoding="unicode")

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "text/xml",
            "X-VPS-Client-Timeout": str(self.timeout),
            "X-VPS-VIT-Integration-Product": "gateway_connect",
            "X-VPS-VIT-Runtime-Version": platform.python_version(),
            "X-VPS-Request-ID": uuid.uuid4().hex,
        }
        if self.options.get("use_paypal_nvp", self.use_paypal_nvp):
            headers["PAYPAL-NVP"] = "Y"
        return headers

    # ---- Commit ----
    def _commit(self, transaction: ET.Element, options: Dict[str, Any]) -> Response:
        request = self._build_request(transaction, options)
        try:
            raw = self.ssl_post(self.url(), request, self._build_headers(), retry=self.retry_safe)
        except httpx.TransportError as e:
            return self.connection_failure(e)
        try:
            response = self._parse(raw)
        except ET.ParseError:
            self.logger.warning("gateway_parse_error", gateway=self.name, body=self.scrub(raw or ""))
            return Response(
                success=False,
                message=f"Unable to parse response: {raw!r}",
                params={"raw_response": raw},
                test=self.test,
            )
        result = response.get("result")
        return Response(
            success=result in ("0", "126"),
            message=response.get("message"),
            params=response,
            authorization=response.get("pn_ref") or response.get("rp_ref"),
            test=self.test,
            fraud_review=result == "126",
            avs_result={"code": response.get("avs_result")},
            cvv_result=CVV_CODE.get(response.get("cv_result")),
        )

    def _parse(self, data: str) -> Dict[str, Any]:
        root = ET.fromstring((data or "").strip())
        response: Dict[str, Any] = {}
        response_data = next((el for el in root.iter() if _local(el.tag) == "ResponseData"), root)
        tx_result = next((el for el in root.iter() if _local(el.tag) == "TransactionResult"), None)
        if tx_result is not None and tx_result.get("Duplicate") == "true":
            response["duplicate"] = True
        for node in response_data:
            self._parse_element(response, node)
        return response

    def _parse_element(self, response: Dict[str, Any], node: ET.Element) -> None:
        # дерево сплющивается, последний одноимённый узел побеждает
        name = _underscore(_local(node.tag))
        if len(node):
            for child in node:
                self._parse_element(response, child)
            return
        if name == "ext_data":
            response[_underscore(node.get("Name", ""))] = node.get("Value", "")
        elif name.endswith("amt"):
            # *Amt кладут сумму в атрибут Currency, а не в текст
            response[name] = node.get("Currency", "")
        else:
            response[name] = node.text.strip() if node.text and node.text.strip() else node.text
