import json
from typing import Any
from urllib import error as urlerror
from urllib import request as urlrequest

from chatmind.constants import AI_REQUEST_TIMEOUT_SECONDS


def post_json_request(
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any],
    timeout: float = AI_REQUEST_TIMEOUT_SECONDS,
) -> dict[str, Any]:
    body = json.dumps(payload).encode("utf-8")
    request = urlrequest.Request(
        url=url,
        data=body,
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urlrequest.urlopen(request, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
            data = json.loads(raw) if raw else {}
            if isinstance(data, dict):
                return data
            return {}
    except urlerror.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise RuntimeError(f"HTTP {exc.code} from provider. {detail[:200]}") from exc
    except TimeoutError as exc:
        raise RuntimeError(f"Provider request timed out: {exc}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise RuntimeError(f"Provider network request failed: {exc}") from exc
