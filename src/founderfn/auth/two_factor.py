"""Setup, verification and removal of a user's TOTP second factor.

The flow the app drives:

    setup(user[, code])    -> pending credential, secret shown to the user once
                              (replacing an enabled one needs a current code)
    verify(user, code, SETUP) -> credential enabled on the first good code
    verify(user, code, LOGIN) -> checks a code, never changes the enabled flag
    disable(user)          -> credential deleted (caller checks a code first)

Every accepted code advances the credential's last used time step, so a
code cannot be accepted twice.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from founderfn import crypto
from founderfn.auth import totp
from founderfn.config import Settings, VerifyMode
from founderfn.errors import NotConfiguredError, ValidationError
from founderfn.store import PostgresStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetupResult:
    secret: str
    provisioning_uri: str
    qr_code_url: str


@dataclass(frozen=True)
class VerifyResult:
    success: bool
    enabled: bool


class TwoFactorService:
    def __init__(
        self,
        store: PostgresStore,
        cfg: Settings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._cfg = cfg
        self._clock = clock

    async def setup(self, user_id: str, code: str | None = None) -> SetupResult:
        """Create (or replace) a pending credential and return its secret.

        Replacing an enabled credential needs a current `code` from it;
        a missing or pending credential is replaced without one.
        """
        existing = await self._store.get_credential(user_id)
        if existing is not None and existing.is_enabled:
            if not code:
                raise ValidationError("Verification code is required")
            if not (await self.verify(user_id, code, VerifyMode.LOGIN)).success:
                logger.warning("2FA reset refused for user %s: wrong code", user_id)
                raise ValidationError("Invalid verification code")

        secret = totp.generate_secret()
        await self._store.upsert_credential(user_id, crypto.seal(secret, self._cfg.master_key))
        uri = totp.provisioning_uri(secret, user_id, self._cfg.totp_issuer)
        logger.info("2FA setup started for user %s", user_id)
        return SetupResult(secret=secret, provisioning_uri=uri, qr_code_url=totp.qr_code_url(uri))

    async def verify(self, user_id: str, code: str, mode: VerifyMode) -> VerifyResult:
        """Check `code` for the user.

        A wrong code is a normal outcome (success=False); a user without a
        credential raises NotConfiguredError.
        """
        if not totp.is_well_formed(code):
            raise ValidationError("Invalid code format. Must be 6 digits.")

        cred = await self._store.get_credential(user_id)
        if cred is None:
            raise NotConfiguredError()
        if mode == VerifyMode.LOGIN and not cred.is_enabled:
            raise NotConfiguredError("Two-factor authentication is not enabled for this user")

        secret = crypto.unseal(cred.secret, self._cfg.master_key)
        step = totp.matching_step(secret, code, self._clock(), self._cfg.totp_valid_window)
        if step is None:
            logger.info("2FA %s verification failed for user %s: wrong code", mode, user_id)
            return VerifyResult(success=False, enabled=cred.is_enabled)

        enable = mode == VerifyMode.SETUP
        if not await self._store.mark_code_used(user_id, step, enable=enable):
            logger.warning("2FA %s verification for user %s rejected: code already used", mode, user_id)
            return VerifyResult(success=False, enabled=cred.is_enabled)

        if enable and not cred.is_enabled:
            logger.info("2FA enabled for user %s", user_id)
        return VerifyResult(success=True, enabled=cred.is_enabled or enable)

    async def disable(self, user_id: str) -> None:
        """Delete the user's credential. Deleting a missing one is not an error."""
        await self._store.delete_credential(user_id)
        logger.info("2FA disabled for user %s", user_id)

    async def status(self, user_id: str) -> bool:
        cred = await self._store.get_credential(user_id)
        return bool(cred and cred.is_enabled)
