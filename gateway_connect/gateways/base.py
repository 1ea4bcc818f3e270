from typing import Protocol, Optional, Dict, Any, Callable
import json
import platform
import sys
import httpx

from ..settings import settings
from ..logging_config import get_logger
from ..utils.http import client, retry_policy
from ..billing.errors import ResponseError
from ..billing.response import Response, MultiResponse


class GatewayAdapter(Protocol):
    name: str

    def purchase(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        ...

    def authorize(self, money: int, payment: Any, options: Optional[Dict[str, Any]] = None) -> Response:
        ...

    def capture(self, money: int, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        ...

    def refund(self, money: int, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        ...

    def void(self, authorization: str, options: Optional[Dict[str, Any]] = None) -> Response:
        ...

    def verify(self, payment: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        ...

    def scrub(self, transcript: str) -> str:
        ...


class Gateway:
    """
    Общая часть адаптеров: URL по режиму, форматирование сумм,
    транспорт (ssl_get / ssl_post / ssl_request) и verify через MultiResponse.
    """

    name = "base"
    display_name = ""
    homepage_url = ""
    test_url = ""
    live_url = ""

    default_currency: Optional[str] = None
    money_format = "cents"
    supported_countries: tuple = ()
    supported_cardtypes: tuple = ()
    currencies_without_fractions = (
        "BIF", "BYR", "CLP", "CVE", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW",
        "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
    )

    # ключ options -> поле Settings, если credential не передан явно
    settings_credentials: Dict[str, str] = {}

    def __init__(self, **options):
        for key, field in self.settings_credentials.items():
            if options.get(key) in (None, "") and getattr(settings, field, None):
                options[key] = getattr(settings, field)
        self.options = options
        self.logger = get_logger(f"gateway_connect.{self.name}")

    @staticmethod
    def requires(options: Dict[str, Any], *keys: str) -> None:
        for key in keys:
            if options.get(key) is None:
                raise ValueError(f"Missing required parameter: {key}")

    @property
    def test(self) -> bool:
        if self.options.get("test") is not None:
            return bool(self.options["test"])
        return settings.GATEWAY_MODE == "test"

    def url(self) -> str:
        return self.test_url if self.test else self.live_url

    # ---- Money ----
    def amount(self, money: Optional[int]) -> Optional[str]:
        if money is None:
            return None
        if isinstance(money, bool) or not isinstance(money, int):
            raise ValueError("money amount must be an integer in cents.")
        if self.money_format == "cents":
            return str(money)
        return f"{money / 100:.2f}"

    def localized_amount(self, money: Optional[int], currency: Optional[str]) -> Optional[str]:
        amount = self.amount(money)
        if amount is None or not currency or currency.upper() not in self.currencies_without_fractions:
            return amount
        if self.money_format == "cents":
            return str(int(amount) // 100)
        return amount.split(".")[0]

    def currency(self, options: Dict[str, Any]) -> Optional[str]:
        return options.get("currency") or self.default_currency

    def user_agent(self) -> str:
        return json.dumps({
            "bindings_version": settings.APP_VERSION,
            "lang": "python",
            "lang_version": platform.python_version(),
            "platform": sys.platform,
            "publisher": "gateway_connect",
        })

    @staticmethod
    def card_brand(payment: Any) -> Optional[str]:
        return getattr(payment, "brand", None)

    # ---- Transport ----
    def _send(self, method: str, url: str, data: Optional[str], headers: Optional[Dict[str, str]]) -> httpx.Response:
        with client() as c:
            return c.request(method, url, content=data, headers=headers)

    def raw_ssl_request(self, method: str, url: str, data: Optional[str] = None,
                        headers: Optional[Dict[str, str]] = None, retry: bool = False) -> httpx.Response:
        send: Callable[..., httpx.Response] = self._send
        if retry:
            send = retry_policy(settings.HTTP_RETRY_MAX)(self._send)
        self.logger.debug("gateway_request", gateway=self.name, method=method, url=url)
        resp = send(method, url, data, headers)
        self.logger.info(
            "gateway_response", gateway=self.name, method=method, url=url,
            status=resp.status_code, success=200 <= resp.status_code < 300,
        )
        return resp

    def ssl_request(self, method: str, url: str, data: Optional[str] = None,
                    headers: Optional[Dict[str, str]] = None, retry: bool = False) -> str:
        resp = self.raw_ssl_request(method, url, data, headers, retry=retry)
        if not 200 <= resp.status_code < 300:
            raise ResponseError(resp)
        return resp.text

    def ssl_post(self, url: str, data: Optional[str], headers: Optional[Dict[str, str]] = None, **kw) -> str:
        return self.ssl_request("POST", url, data, headers, **kw)

    def ssl_get(self, url: str, headers: Optional[Dict[str, str]] = None) -> str:
        return self.ssl_request("GET", url, None, headers)

    def connection_failure(self, e: Exception) -> Response:
        self.logger.warning("gateway_transport_error", gateway=self.name, error=str(e))
        return Response(
            success=False,
            message=f"Connection error: {e}",
            params={"error": str(e)},
            test=self.test,
        )

    # ---- Verify ----
    def verify_with_void(self, authorize: Callable[[], Response], void: Callable[[str], Response],
                         ignore_void: bool = True, use_first_response: bool = True) -> MultiResponse:
        multi = MultiResponse(use_first_response=use_first_response)
        multi.process(authorize)
        multi.process(lambda: void(multi.authorization), ignore_result=ignore_void)
        return multi

    # ---- Scrubbing ----
    def supports_scrubbing(self) -> bool:
        return False

    def scrub(self, transcript: str) -> str:
        raise NotImplementedError("This gateway does not support scrubbing.")
