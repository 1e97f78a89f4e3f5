"""Pre-signed URL signing and verification.

A pre-signed URL carries two extra query parameters appended by :func:`sign`:

* ``expiration`` - integer milliseconds since the Unix epoch.
* ``hmacSignature`` - HMAC-SHA256 over the canonical request string, encoded
  as URL-safe base64 without ``=`` padding.

The canonical string is ``METHOD|scheme://host[:port]/path|query`` where
``query`` is the raw query string exactly as transmitted, minus the
``hmacSignature`` pair. Every other parameter, the expiration included, keeps
its original order and encoding, so any reordering, truncation or re-encoding
of the query string produces a different signature.
"""

import base64
import enum
import hashlib
import hmac
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple, Union
from urllib.parse import urlsplit

from starlette.requests import Request

logger = logging.getLogger(__name__)

EXPIRATION = "expiration"
HMAC_SIGNATURE = "hmacSignature"

MSG_URL_EXPIRED = "Pre-signed URL has expired"
MSG_SIGNATURE_DOES_NOT_MATCH = "Signatures do not match"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLIS_PATTERN = re.compile(r"\d{1,18}", re.ASCII)
_DEFAULT_PORTS = {"http": "80", "https": "443"}


class HttpMethod(str, enum.Enum):
    """HTTP methods a pre-signed URL can be issued for."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"


@dataclass(frozen=True)
class SignedRequestView:
    """The parts of an inbound request that take part in signature verification."""

    method: str
    origin: str
    raw_query: str

    @classmethod
    def from_url(cls, method: str, url: str) -> "SignedRequestView":
        """Build a view from a full URL, as a client would replay it."""
        parts = urlsplit(url)
        return cls(
            method=method.upper(),
            origin=_build_origin(parts.scheme, parts.netloc, parts.path),
            raw_query=parts.query,
        )

    @classmethod
    def from_request(cls, request: Request) -> "SignedRequestView":
        """
        Build a view from a Starlette request.

        The path is taken from the ASGI ``raw_path`` when the server provides
        it so that percent-encoded paths are compared as transmitted.
        """
        raw_path = request.scope.get("raw_path")
        if raw_path:
            path = raw_path.split(b"?", 1)[0].decode("latin-1")
        else:
            path = request.url.path
        query_string = request.scope.get("query_string", b"")
        return cls(
            method=request.method.upper(),
            origin=_build_origin(request.url.scheme, request.url.netloc, path),
            raw_query=query_string.decode("latin-1"),
        )


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of :func:`verify`.

    ``expiration`` is in epoch milliseconds and ``presented_signature`` is
    the raw ``hmacSignature`` value. Each is None when its parameter was
    missing or unusable, in which case ``matches`` is always False.
    """

    matches: bool
    expiration: Optional[int] = None
    presented_signature: Optional[str] = None


def _build_origin(scheme: str, netloc: str, path: str) -> str:
    """
    Normalize scheme and authority the way HTTP clients send them.

    Scheme and host are lower-cased and the default port for the scheme is
    dropped, so an issuer writing ``http://Host:80/x`` signs the same origin
    the server rebuilds from the ``Host`` header. The path is left untouched.
    """
    scheme = scheme.lower()
    host, sep, port = netloc.rpartition(":")
    # No port, or the colons belong to an IPv6 literal
    if not sep or "]" in port or (port and not port.isdigit()):
        host, port = netloc, ""
    if port == _DEFAULT_PORTS.get(scheme):
        port = ""
    authority = f"{host.lower()}:{port}" if port else host.lower()
    return f"{scheme}://{authority}{path or '/'}"


def _split_query(query: str) -> List[Tuple[str, Optional[str]]]:
    """Split a raw query string into (name, value) pairs without decoding."""
    if not query:
        return []
    pairs = []
    for pair in query.split("&"):
        name, sep, value = pair.partition("=")
        pairs.append((name, value if sep else None))
    return pairs


def _strip_signature(query: str) -> str:
    return "&".join(
        pair for pair in query.split("&") if pair.partition("=")[0] != HMAC_SIGNATURE
    )


def _to_epoch_millis(expiration: Union[datetime, int]) -> int:
    if isinstance(expiration, datetime):
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        expiration = (expiration - _EPOCH) // timedelta(milliseconds=1)
    elif isinstance(expiration, bool) or not isinstance(expiration, int):
        raise TypeError("expiration must be a datetime or epoch milliseconds")
    if expiration < 0:
        raise ValueError("expiration must not be before the Unix epoch")
    return expiration


def build_canonical_string(method: Union[HttpMethod, str], origin: str, query: str) -> bytes:
    """
    Construct the exact bytes that are signed.

    Both the issuer and the verifier must produce identical output here, so
    nothing is normalized; the method must already be an HttpMethod value.
    """
    return "|".join([HttpMethod(method).value, origin, query]).encode("utf-8")


def compute_signature(
    method: Union[HttpMethod, str], origin: str, query: str, secret: str
) -> str:
    """Return the URL-safe signature for a canonical request."""
    digest = hmac.new(
        secret.encode("utf-8"),
        build_canonical_string(method, origin, query),
        hashlib.sha256,
    ).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def sign(
    method: Union[HttpMethod, str],
    url: str,
    expiration: Union[datetime, int],
    secret: str,
) -> str:
    """
    Create a pre-signed URL.

    Args:
        method: The HTTP method the URL will be used with
        url: Absolute URL, optionally with its own query parameters
        expiration: When the URL stops being valid, as a datetime (naive
            values are treated as UTC) or epoch milliseconds
        secret: The shared signing secret

    Returns:
        The URL with ``expiration`` and ``hmacSignature`` appended. Scheme
        and host are lower-cased and a default port is dropped.

    ``expiration`` and ``hmacSignature`` are reserved: a URL that already
    carries either is refused rather than re-signed, since :func:`verify`
    treats a repeated parameter as a mismatch.

    Raises:
        ValueError: If the URL is not absolute, already carries one of the
            signing parameters, the expiration is before the Unix epoch, or
            the secret is empty
    """
    if not secret:
        raise ValueError("A secret key is required to sign URLs")
    method = HttpMethod(method.upper() if isinstance(method, str) else method)

    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"URL must be absolute: {url}")
    for name, _ in _split_query(parts.query):
        if name in (EXPIRATION, HMAC_SIGNATURE):
            raise ValueError(f"URL already contains the reserved parameter '{name}'")

    expiration_param = f"{EXPIRATION}={_to_epoch_millis(expiration)}"
    query = f"{parts.query}&{expiration_param}" if parts.query else expiration_param
    origin = _build_origin(parts.scheme, parts.netloc, parts.path)

    signature = compute_signature(method, origin, query, secret)
    return f"{origin}?{query}&{HMAC_SIGNATURE}={signature}"


def generate_presigned_url(
    method: Union[HttpMethod, str],
    url: str,
    expires_in: Union[timedelta, int],
    secret: str,
    now: Optional[datetime] = None,
) -> str:
    """Sign ``url`` so that it expires ``expires_in`` (seconds or timedelta) from now."""
    if not isinstance(expires_in, timedelta):
        expires_in = timedelta(seconds=expires_in)
    now = now or datetime.now(timezone.utc)
    return sign(method, url, now + expires_in, secret)


def verify(view: SignedRequestView, secret: str) -> VerificationResult:
    """
    Re-derive the signature of an inbound request and compare it.

    A missing, repeated or malformed ``expiration`` or ``hmacSignature``
    parameter, or a method that URLs are never signed for, is reported as
    a mismatch rather than raised.
    """
    try:
        method = HttpMethod(view.method.upper())
    except ValueError:
        logger.debug(f"Unsupported method for pre-signed URL: {view.method!r}")
        return VerificationResult(matches=False)

    pairs = _split_query(view.raw_query)
    signatures = [value for name, value in pairs if name == HMAC_SIGNATURE]
    expirations = [value for name, value in pairs if name == EXPIRATION]
    if len(signatures) != 1 or not signatures[0]:
        return VerificationResult(matches=False)
    presented = signatures[0]
    if len(expirations) != 1 or not _MILLIS_PATTERN.fullmatch(expirations[0] or ""):
        return VerificationResult(matches=False, presented_signature=presented)
    expiration = int(expirations[0])

    expected = compute_signature(method, view.origin, _strip_signature(view.raw_query), secret)
    matches = hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))
    return VerificationResult(
        matches=matches, expiration=expiration, presented_signature=presented
    )
