"""Pre-signed URL filter applied at the server boundary."""
import enum
import logging
import time
from typing import Awaitable, Callable, Iterable, Optional

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse, Response

from file_proxy.services.signature_cache import BaseSignatureCache
from file_proxy.utils.sanitization import sanitize_for_log
from file_proxy.utils.url_signer import (
    MSG_SIGNATURE_DOES_NOT_MATCH,
    MSG_URL_EXPIRED,
    HttpMethod,
    SignedRequestView,
    verify,
)

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]


class Decision(str, enum.Enum):
    """Per-request outcome of pre-signed URL authentication."""
    ALLOWED = "allowed"
    REJECTED_EXPIRED = "rejected_expired"
    REJECTED_MISMATCH = "rejected_mismatch"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOWED

    @property
    def message(self) -> Optional[str]:
        """Fixed plain-text body sent back for a rejection."""
        return _REJECTION_MESSAGES.get(self)


_REJECTION_MESSAGES = {
    Decision.REJECTED_EXPIRED: MSG_URL_EXPIRED,
    Decision.REJECTED_MISMATCH: MSG_SIGNATURE_DOES_NOT_MATCH,
}


class PreSignedUrlAuthenticator:
    """
    Decides whether a request carries a valid pre-signed URL.

    ``config`` only needs a ``get_secret_key()`` method; the key is read on
    every request. Signatures accepted before their expiration are recorded
    in ``signature_cache`` so that late duplicates are let through for the
    cache's grace window.
    """

    def __init__(
        self,
        config,
        signature_cache: BaseSignatureCache,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.signature_cache = signature_cache
        self._clock = clock

    def decide(self, view: SignedRequestView) -> Decision:
        # HEAD is exempt from URL signing
        if view.method.upper() == HttpMethod.HEAD.value:
            return Decision.ALLOWED

        result = verify(view, self.config.get_secret_key())
        if not result.matches:
            return Decision.REJECTED_MISMATCH

        now_ms = int(self._clock() * 1000)
        if result.expiration > now_ms:
            self.signature_cache.put_signature(result.presented_signature)
            return Decision.ALLOWED

        if self.signature_cache.contains_with_refresh(result.presented_signature):
            logger.info(
                f"Accepted expired URL within signature grace window: "
                f"{view.method} {sanitize_for_log(view.origin)}"
            )
            return Decision.ALLOWED
        return Decision.REJECTED_EXPIRED

    async def authenticate(self, request: Request, call_next: CallNext) -> Response:
        """
        Forward the request unchanged if allowed, otherwise answer 401.

        Args:
            request: The inbound request
            call_next: Continuation handing the request to the next handler

        Returns:
            The downstream response, or a plain-text 401 naming the reason
        """
        view = SignedRequestView.from_request(request)
        decision = self.decide(view)
        if decision.allowed:
            return await call_next(request)

        logger.warning(
            f"Rejected {view.method} {sanitize_for_log(view.origin)}: {decision.message}"
        )
        return PlainTextResponse(decision.message, status_code=status.HTTP_401_UNAUTHORIZED)


class PreSignedUrlMiddleware(BaseHTTPMiddleware):
    """Applies :class:`PreSignedUrlAuthenticator` to requests under the protected prefixes."""

    def __init__(
        self,
        app,
        authenticator: PreSignedUrlAuthenticator,
        protected_prefixes: Iterable[str] = ("/files",),
    ):
        super().__init__(app)
        self.authenticator = authenticator
        self.protected_prefixes = tuple(prefix.rstrip("/") for prefix in protected_prefixes)

    def is_protected(self, path: str) -> bool:
        for prefix in self.protected_prefixes:
            if not prefix or path == prefix or path.startswith(prefix + "/"):
                return True
        return False

    async def dispatch(self, request: Request, call_next):
        if not self.is_protected(request.url.path):
            return await call_next(request)
        return await self.authenticator.authenticate(request, call_next)
