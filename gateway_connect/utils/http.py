from urllib.parse import quote_plus
import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
from ..settings import settings

def client(timeout_sec: int | None = None, open_timeout_sec: int | None = None) -> httpx.Client:
    timeout = httpx.Timeout(
        timeout_sec or settings.HTTP_TIMEOUT_SEC,
        connect=open_timeout_sec or settings.HTTP_OPEN_TIMEOUT_SEC,
    )
    return httpx.Client(timeout=timeout)

def retry_policy(max_attempts: int = 3):
    # только ошибки соединения, до процессинга запрос не дошёл
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
        retry=retry_if_exception_type(httpx.ConnectError),
        reraise=True,
    )

def to_query(params, namespace: str | None = None) -> str:
    # вложенные ключи в стиле card[number]=...&line_items[][name]=..., ключи отсортированы
    if isinstance(params, dict):
        parts = []
        for key, value in params.items():
            if isinstance(value, (dict, list)) and not value:
                continue
            parts.append(to_query(value, f"{namespace}[{key}]" if namespace else str(key)))
        if "[]" not in (namespace or ""):
            parts.sort()
        return "&".join(parts)
    if isinstance(params, list):
        prefix = f"{namespace}[]"
        if not params:
            return f"{quote_plus(prefix)}="
        return "&".join(to_query(v, prefix) for v in params)
    if params is None:
        value = ""
    elif isinstance(params, bool):
        value = "true" if params else "false"
    else:
        value = str(params)
    return f"{quote_plus(namespace)}={quote_plus(value)}"
