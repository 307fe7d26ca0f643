"""Caller identity for Falcon ASGI requests.

The API gateway authenticates end users and forwards the verified user id in
``X-Almanac-User`` together with ``X-Almanac-User-Signature``, an HMAC-SHA256
of the user id under a key shared with this service. ``PrincipalMiddleware``
checks the signature and stores the user id on ``req.context.principal``;
requests without a valid pair get ``None``.

Usage
-----
Register the middleware when creating the Falcon app::

    verifier = PrincipalVerifier(b"shared-gateway-key")
    app = falcon.asgi.App(middleware=[PrincipalMiddleware(verifier)])

"""

from __future__ import annotations

import hashlib
import hmac
import typing as typ

from almanac.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = [
    "PRINCIPAL_HEADER",
    "PRINCIPAL_SIGNATURE_HEADER",
    "PrincipalMiddleware",
    "PrincipalVerifier",
]

logger = get_logger(__name__)

PRINCIPAL_HEADER = "X-Almanac-User"
PRINCIPAL_SIGNATURE_HEADER = "X-Almanac-User-Signature"


class PrincipalVerifier:
    """Sign and verify gateway-asserted user ids."""

    def __init__(self, key: bytes) -> None:
        """Initialise the verifier with the shared gateway key."""
        if not key:
            msg = "gateway signing key must not be empty"
            raise ValueError(msg)
        self._key = key

    def sign(self, user_id: str) -> str:
        """Return the hex signature the gateway sends for ``user_id``."""
        return hmac.new(self._key, user_id.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(self, user_id: str, signature: str) -> bool:
        """Return whether ``signature`` was issued for ``user_id``."""
        return hmac.compare_digest(self.sign(user_id), signature)


class PrincipalMiddleware:
    """Falcon middleware attaching the verified caller to ``req.context``.

    Parameters
    ----------
    verifier
        Checks the gateway signature on the forwarded user id.

    """

    def __init__(self, verifier: PrincipalVerifier) -> None:
        """Initialise the middleware with a principal verifier."""
        self._verifier = verifier

    async def process_request(self, req: Request, _resp: Response) -> None:
        """Set ``req.context.principal`` to the verified user id or ``None``."""
        req.context.principal = None
        user_id = req.get_header(PRINCIPAL_HEADER)
        if not user_id:
            return
        signature = req.get_header(PRINCIPAL_SIGNATURE_HEADER) or ""
        if not self._verifier.verify(user_id, signature):
            log_warning(
                logger,
                "Rejected forwarded principal %r with an invalid signature",
                user_id,
            )
            return
        req.context.principal = user_id
