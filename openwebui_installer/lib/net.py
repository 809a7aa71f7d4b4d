from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import List, Optional

logger = logging.getLogger(__name__)


def http_status(url: str, *, timeout: float = 5.0) -> Optional[int]:
    """HTTP status of a GET, None when nothing answers."""

    req = urllib.request.Request(url, method="GET")
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            return int(response.status)
    except urllib.error.HTTPError as e:
        return int(e.code)
    except (urllib.error.URLError, OSError):
        return None


def list_models(base_url: str, *, timeout: float = 5.0) -> Optional[List[str]]:
    """Model ids served by an OpenAI-compatible API, None when unreachable.

    Only GET /models is ever issued; no inference requests.
    """

    req = urllib.request.Request(f"{base_url.rstrip('/')}/models", method="GET")
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            payload = json.loads(response.read().decode("utf-8"))
    except (urllib.error.URLError, urllib.error.HTTPError, OSError, json.JSONDecodeError):
        return None

    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list):
        return []
    return [str(m.get("id")) for m in data if isinstance(m, dict) and m.get("id")]
