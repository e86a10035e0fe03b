# One-shot HTTP calls against the operator site; callers own any retry policy.

from typing import Dict, Mapping, Optional

import requests

from .errors import UpstreamHttpError

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


def new_session() -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session


def request_text(
    session: requests.Session,
    method: str,
    url: str,
    *,
    data: Optional[Mapping[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    service_name: str = "dbus",
) -> str:
    try:
        resp = session.request(method, url, data=data, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise UpstreamHttpError(502, f"{service_name} request failed: {exc}") from exc

    if not resp.ok:
        raise UpstreamHttpError(
            resp.status_code,
            f"{service_name} request failed with status {resp.status_code}",
        )
    return resp.text
