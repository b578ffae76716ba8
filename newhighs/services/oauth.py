from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Protocol, Tuple
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import httpx

from newhighs.logging_config import get_logger

logger = get_logger("oauth")


SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"


class OAuthError(RuntimeError):
    """Handshake failure: transport error, non-2xx reply, or a reply without tokens."""


@dataclass(frozen=True)
class TokenPair:
    token: str
    secret: str


class AccessCredentials(TokenPair):
    """Durable access-token pair produced by the verifier exchange. Immutable once issued."""


@dataclass(frozen=True)
class RequestToken:
    oauth_token: str
    oauth_token_secret: str
    auth_url: str

    def as_pair(self) -> TokenPair:
        return TokenPair(token=self.oauth_token, secret=self.oauth_token_secret)


# ------------------------------------------------------------
# Signing (RFC 5849, HMAC-SHA1)
# ------------------------------------------------------------

def _pct(value: object) -> str:
    # RFC 3986 unreserved set only; quote() never escapes "-._~"
    return quote(str(value), safe="")


def _split_url(url: str) -> Tuple[str, List[Tuple[str, str]]]:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port
    if port and not ((scheme == "http" and port == 80) or (scheme == "https" and port == 443)):
        host = f"{host}:{port}"
    base = urlunsplit((scheme, host, parts.path or "/", "", ""))
    return base, parse_qsl(parts.query, keep_blank_values=True)


def signature_base_string(method: str, url: str, oauth_params: Mapping[str, str]) -> str:
    base_url, query = _split_url(url)
    pairs = [(_pct(k), _pct(v)) for k, v in query]
    pairs += [(_pct(k), _pct(v)) for k, v in oauth_params.items() if k != "oauth_signature"]
    pairs.sort()
    normalized = "&".join(f"{k}={v}" for k, v in pairs)
    return "&".join([method.upper(), _pct(base_url), _pct(normalized)])


def hmac_sha1_signature(base_string: str, consumer_secret: str, token_secret: str = "") -> str:
    key = f"{_pct(consumer_secret)}&{_pct(token_secret)}".encode("utf-8")
    digest = hmac.new(key, base_string.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def _auth_header(params: Mapping[str, str]) -> str:
    body = ", ".join(f'{_pct(k)}="{_pct(v)}"' for k, v in sorted(params.items()))
    return f"OAuth {body}"


class RequestSigner(Protocol):
    def headers(
        self,
        method: str,
        url: str,
        *,
        credentials: Optional[TokenPair] = None,
        extra: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, str]: ...


class OAuth1Signer:
    """
    Produces OAuth 1.0a Authorization headers.

    Signed parameters are the URL query plus every oauth_* protocol parameter,
    including extras such as oauth_callback / oauth_verifier.
    """

    def __init__(self, *, consumer_key: str, consumer_secret: str):
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret

    def authorize(
        self,
        method: str,
        url: str,
        *,
        credentials: Optional[TokenPair] = None,
        extra: Optional[Mapping[str, str]] = None,
        nonce: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> Dict[str, str]:
        params: Dict[str, str] = {
            "oauth_consumer_key": self.consumer_key,
            "oauth_nonce": nonce or secrets.token_hex(16),
            "oauth_signature_method": SIGNATURE_METHOD,
            "oauth_timestamp": str(int(timestamp if timestamp is not None else time.time())),
            "oauth_version": OAUTH_VERSION,
        }
        if credentials is not None:
            params["oauth_token"] = credentials.token
        for k, v in (extra or {}).items():
            params[k] = str(v)

        base = signature_base_string(method, url, params)
        params["oauth_signature"] = hmac_sha1_signature(
            base,
            self.consumer_secret,
            credentials.secret if credentials is not None else "",
        )
        return params

    def headers(
        self,
        method: str,
        url: str,
        *,
        credentials: Optional[TokenPair] = None,
        extra: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, str]:
        return {"Authorization": _auth_header(self.authorize(method, url, credentials=credentials, extra=extra))}


# ------------------------------------------------------------
# Credential holder
# ------------------------------------------------------------

class CredentialStore:
    """
    In-memory holder for the current access credentials (lost on restart).
    None until the verifier exchange succeeds; readers get the immutable value itself.
    """

    def __init__(self, initial: Optional[AccessCredentials] = None) -> None:
        self._current = initial

    def current(self) -> Optional[AccessCredentials]:
        return self._current

    def set(self, credentials: AccessCredentials) -> None:
        self._current = credentials

    @property
    def is_authorized(self) -> bool:
        return self._current is not None


# ------------------------------------------------------------
# Three-legged handshake
# ------------------------------------------------------------

def _parse_token_reply(text: str) -> Dict[str, str]:
    return {k: v for k, v in parse_qsl((text or "").strip(), keep_blank_values=True)}


class EtradeOAuthClient:
    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        signer: OAuth1Signer,
        request_token_url: str,
        access_token_url: str,
        authorize_url: str,
        timeout_sec: float = 20.0,
    ):
        self.client = client
        self.signer = signer
        self.request_token_url = request_token_url
        self.access_token_url = access_token_url
        self.authorize_url = authorize_url.rstrip("?")
        self.timeout_sec = float(timeout_sec)

    async def _signed_get(self, url: str, *, credentials: Optional[TokenPair], extra: Mapping[str, str]) -> httpx.Response:
        headers = self.signer.headers("GET", url, credentials=credentials, extra=extra)
        try:
            resp = await self.client.get(url, headers=headers, timeout=self.timeout_sec)
        except httpx.HTTPError as e:
            logger.warning("oauth_transport_error | url=%s err=%s: %s", url, type(e).__name__, e)
            raise OAuthError(f"{type(e).__name__}: {e}") from e
        if resp.status_code >= 400:
            logger.warning("oauth_http_error | url=%s status=%s body=%s", url, resp.status_code, resp.text[:500])
            raise OAuthError(f"HTTP {resp.status_code}")
        return resp

    def build_auth_url(self, oauth_token: str) -> str:
        return f"{self.authorize_url}?{urlencode({'key': self.signer.consumer_key, 'token': oauth_token})}"

    async def request_token(self) -> RequestToken:
        """Leg 1: temporary token pair plus the URL the user visits to obtain a verifier."""
        resp = await self._signed_get(self.request_token_url, credentials=None, extra={"oauth_callback": "oob"})
        parsed = _parse_token_reply(resp.text)
        token = parsed.get("oauth_token")
        secret = parsed.get("oauth_token_secret")
        if not token or not secret:
            raise OAuthError("request_token reply missing oauth_token/oauth_token_secret")

        logger.info("oauth_request_token | ok=1")
        return RequestToken(oauth_token=token, oauth_token_secret=secret, auth_url=self.build_auth_url(token))

    async def exchange_verifier(self, verifier: str, temporary: TokenPair) -> AccessCredentials:
        """Leg 3: trade verifier + temporary pair for durable access credentials."""
        resp = await self._signed_get(
            self.access_token_url,
            credentials=temporary,
            extra={"oauth_verifier": verifier},
        )
        parsed = _parse_token_reply(resp.text)
        token = parsed.get("oauth_token")
        secret = parsed.get("oauth_token_secret")
        if not token or not secret:
            raise OAuthError("access_token reply missing oauth_token/oauth_token_secret")

        logger.info("oauth_access_token | ok=1")
        return AccessCredentials(token=token, secret=secret)
