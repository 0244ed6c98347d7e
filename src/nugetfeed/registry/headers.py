"""Request header construction for feed requests, including the cross-origin credential filter."""
from __future__ import annotations

import base64
import logging
from typing import Dict, Optional

from yarl import URL

from ..common.logging_utils import extra_context, is_debug_enabled, safe_url
from ..constants import AuthType, Constants
from ..models import PackageSource, PackageSourceAuth

logger = logging.getLogger(__name__)

AUTHORIZATION = "Authorization"


def basic_credentials(username: str, password: str) -> str:
    """Encode ``username:password`` for a Basic Authorization header."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def api_key_header_name(auth: Optional[PackageSourceAuth]) -> str:
    if auth is not None and auth.api_key_header:
        return auth.api_key_header
    return Constants.DEFAULT_API_KEY_HEADER


def build_headers(
    source: PackageSource,
    accept: str = Constants.DEFAULT_ACCEPT,
    user_agent: str = Constants.USER_AGENT,
) -> Dict[str, str]:
    """Headers for a request to ``source`` derived from its auth type.

    Incomplete credentials (e.g. basic without a username) add no auth header.
    """
    headers = {"Accept": accept, "User-Agent": user_agent}
    auth = source.auth
    if auth is None or auth.type is AuthType.NONE or not auth.password:
        return headers

    if auth.type is AuthType.BASIC:
        if auth.username:
            headers[AUTHORIZATION] = basic_credentials(auth.username, auth.password)
    elif auth.type is AuthType.BEARER:
        headers[AUTHORIZATION] = f"Bearer {auth.password}"
    elif auth.type is AuthType.API_KEY:
        headers[api_key_header_name(auth)] = auth.password
    return headers


def _origin(url: str) -> Optional[URL]:
    try:
        parsed = URL(url)
    except (TypeError, ValueError):
        return None
    if not parsed.is_absolute():
        return None
    return parsed.origin()


def is_same_origin(a: str, b: str) -> bool:
    """True when both URLs parse and share scheme, host and port."""
    origin_a, origin_b = _origin(a), _origin(b)
    return origin_a is not None and origin_b is not None and origin_a == origin_b


def strip_auth_headers(headers: Dict[str, str], source: PackageSource) -> Dict[str, str]:
    """Copy of ``headers`` without Authorization or the source's api-key header."""
    drop = {AUTHORIZATION.lower(), api_key_header_name(source.auth).lower()}
    return {k: v for k, v in headers.items() if k.lower() not in drop}


def filter_headers_for_url(
    source: PackageSource,
    target_url: str,
    accept: str = Constants.DEFAULT_ACCEPT,
    user_agent: str = Constants.USER_AGENT,
) -> Dict[str, str]:
    """Build headers for ``target_url``, dropping credentials when it leaves the source's origin.

    A URL that fails to parse is treated as cross-origin.
    """
    headers = build_headers(source, accept=accept, user_agent=user_agent)
    if is_same_origin(source.index_url, target_url):
        return headers

    filtered = strip_auth_headers(headers, source)
    if len(filtered) != len(headers) and is_debug_enabled(logger):
        logger.debug(
            "Stripped credentials for cross-origin request",
            extra=extra_context(
                event="decision", component="headers", action="filter_headers",
                outcome="stripped", target=safe_url(target_url), source=source.id,
            ),
        )
    return filtered
