import httpx


class ActiveGatewayError(Exception):
    pass


class ResponseError(ActiveGatewayError):
    """Процессинг ответил не-2xx; тело ответа доступно через .response"""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"Failed with {response.status_code} {response.reason_phrase}")

    @property
    def body(self) -> str:
        return self.response.text or ""


class OAuthResponseError(ActiveGatewayError):
    """Не удалось получить access token (OAuth client_credentials)."""

    def __init__(self, response: httpx.Response | None, message: str | None = None):
        self.response = response
        if message is None and response is not None:
            message = f"Failed with {response.status_code} {response.reason_phrase}"
        super().__init__(message)
