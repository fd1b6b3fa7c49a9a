"""
Session Principal Encryption Module
===================================

Serializes the authenticated principal into an encrypted, opaque string for
the session slot and reverses the process on every request.

- Uses Fernet (AES-128-CBC + HMAC) from ``cryptography``
- The Fernet key is derived with HKDF-SHA256 from the operator supplied
  ``token_encryption_key``; it never depends on request data
- Client id, client secret, API version and the debug flag are never
  written to the session; they are re-populated from configuration on load
- Anything that cannot be decrypted or decoded is treated as "no principal"
"""

import base64
import logging
from datetime import datetime, timezone
from typing import Any, MutableMapping, Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from pydantic import ValidationError

from webflow.auth.endpoints import EndpointResolver
from webflow.config import EndpointCredentials, FlowSettings
from webflow.exceptions import SessionDecodeError, StaleEndpointError
from webflow.models import TRANSIENT_FIELDS, Principal

logger = logging.getLogger(__name__)

SESSION_KEY = "webflow.principal"

_HKDF_INFO = b"webflow.session.principal"


def derive_fernet_key(token_encryption_key: str) -> bytes:
    """Derive a urlsafe-base64 Fernet key from an arbitrary length secret."""
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=_HKDF_INFO)
    return base64.urlsafe_b64encode(hkdf.derive(token_encryption_key.encode("utf-8")))


class SessionCodec:
    """Encrypts principals for the session slot and decrypts them back."""

    def __init__(self, settings: FlowSettings, resolver: EndpointResolver):
        self._fernet = Fernet(derive_fernet_key(settings.token_encryption_key))
        self._resolver = resolver
        self._api_version = settings.api_version
        self._debugging = settings.debugging

    def __repr__(self) -> str:
        return "<SessionCodec>"

    # =========================================================================
    # Encoding
    # =========================================================================

    def persist(self, principal: Principal) -> Tuple[Optional[str], bool]:
        """
        Encode a principal for storage.

        Returns:
            ``(blob, should_clear)``. ``should_clear`` is True when the
            principal logged out; the slot must then be emptied.
        """
        if principal.logout_flag:
            return None, True

        snapshot = principal.model_copy(
            update={
                "client_id": None,
                "client_secret": None,
                "version": None,
                "debugging": None,
                "last_seen": datetime.now(timezone.utc),
            }
        )
        payload = snapshot.model_dump_json(exclude=set(TRANSIENT_FIELDS) | {"logout_flag"})
        return self._fernet.encrypt(payload.encode("utf-8")).decode("ascii"), False

    def load(self, blob: Any) -> Optional[Principal]:
        """
        Decode a stored principal.

        Returns None for an empty slot, an undecodable blob, or a principal
        whose endpoint is no longer configured. Never raises.
        """
        if not blob:
            return None

        try:
            principal, credentials = self._decode(blob)
        except (SessionDecodeError, StaleEndpointError) as e:
            logger.warning(f"Discarding session principal: {type(e).__name__}: {e}")
            return None

        principal.client_id = credentials.key
        principal.client_secret = credentials.secret
        principal.version = self._api_version
        principal.debugging = self._debugging
        return principal

    def _decode(self, blob: Any) -> Tuple[Principal, EndpointCredentials]:
        """
        Decrypt a blob and look up the credentials of its endpoint.

        Raises:
            SessionDecodeError: If the blob cannot be decrypted or parsed
            StaleEndpointError: If the principal's endpoint is not configured
        """
        try:
            payload = self._fernet.decrypt(blob)
            principal = Principal.model_validate_json(payload)
        except (InvalidToken, ValidationError, TypeError, ValueError) as e:
            raise SessionDecodeError(f"{type(e).__name__}: {e}") from e

        credentials = self._resolver.get(principal.endpoint)
        if credentials is None:
            raise StaleEndpointError(f"endpoint {principal.endpoint!r} is not configured")
        return principal, credentials

    # =========================================================================
    # Session Slot
    # =========================================================================

    def retrieve(self, session: MutableMapping[str, Any]) -> Optional[Principal]:
        return self.load(session.get(SESSION_KEY))

    def save(self, session: MutableMapping[str, Any], principal: Optional[Principal]) -> None:
        """
        Write the principal to the session slot.

        A None principal leaves the slot untouched. The slot is only written
        when its value changes.
        """
        if principal is None:
            return

        blob, should_clear = self.persist(principal)
        if should_clear:
            if SESSION_KEY in session:
                del session[SESSION_KEY]
                logger.debug("Cleared session principal after logout")
            return

        if blob != session.get(SESSION_KEY):
            session[SESSION_KEY] = blob
