"""
API-key lifecycle: request, verify, and inactivity expiry.

A credential moves None -> pending verification -> active, and is deleted
outright once it has been idle longer than the inactivity threshold. Every
request rotates the pending challenge; verification issues a fresh key and
drops the challenge in one conditional update.

Notifications are best-effort: the email provider reports failure as False
and the lifecycle carries on regardless.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from pymongo.errors import DuplicateKeyError

from config import ApiKeySettings
from errors import ConflictError, InvalidOrExpiredChallengeError, ValidationError
from infrastructure.email.protocol import EmailProvider
from repositories.credential_repository import CredentialRepository
from schemas.models.credential import ApiCredentialDoc
from shared.crypto import hash_code, verify_code
from shared.datetime_utils import ensure_utc, utc_now
from shared.generators import generate_api_key, generate_otp_code
from shared.logging import get_logger

log = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def key_prefix(api_key: str) -> str:
    """First characters of a key, safe to put in logs."""
    return api_key[:4]


class CredentialService:
    def __init__(
        self,
        credential_repo: CredentialRepository,
        email_provider: EmailProvider,
        settings: ApiKeySettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = credential_repo
        self._email = email_provider
        self._settings = settings
        self._clock = clock

    @property
    def inactivity_threshold(self) -> timedelta:
        return timedelta(days=self._settings.inactivity_days)

    def is_inactive(self, credential: ApiCredentialDoc, now: datetime) -> bool:
        """True when the last call is older than the threshold.

        A credential that has never been used is exempt.
        """
        if credential.last_call_at is None:
            return False
        return now - ensure_utc(credential.last_call_at) > self.inactivity_threshold

    async def request_key(self, email: str) -> str:
        """Start (or restart) verification for *email*.

        Returns the normalized email, which the caller keeps as the
        pending-verification marker.

        Raises:
            ValidationError: email is blank.
            ConflictError: the record kept colliding with concurrent requests.
        """
        display_email = (email or "").strip()
        if not display_email:
            raise ValidationError("Email address is required.", field="email")
        email_lower = display_email.lower()

        code = generate_otp_code(self._settings.challenge_code_length)
        code_hash = hash_code(code)
        now = self._clock()
        expires_at = now + timedelta(seconds=self._settings.challenge_ttl_seconds)

        attempts = max(1, self._settings.upsert_max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                await self._repo.upsert_challenge(
                    email=display_email,
                    email_lower=email_lower,
                    code_hash=code_hash,
                    expires_at=expires_at,
                    now=now,
                )
                break
            except DuplicateKeyError:
                # Two first-time requests for the same email raced on insert;
                # the retry lands on the existing document as an update.
                log.warning(
                    "api_key_request_upsert_conflict",
                    email=email_lower,
                    attempt=attempt,
                )
        else:
            raise ConflictError("Could not register the API key request, please retry.")

        sent = await self._email.send_verification_code(display_email, code)
        log.info(
            "api_key_requested",
            email=email_lower,
            expires_at=expires_at.isoformat(),
            email_sent=sent,
        )
        return email_lower

    async def verify_key(self, email_lower: str, code: str) -> str:
        """Check *code* against the pending challenge and issue a new key.

        Returns the plaintext key. It is shown once and never logged.

        Raises:
            ValidationError: code is blank.
            InvalidOrExpiredChallengeError: no pending challenge, expired, or
                wrong code, or a concurrent verification consumed it first.
        """
        code = (code or "").strip()
        if not code:
            raise ValidationError("Verification code is required.", field="code")
        if not email_lower:
            raise InvalidOrExpiredChallengeError()

        credential = await self._repo.find_by_email(email_lower)
        now = self._clock()
        if credential is None or credential.challenge is None:
            log.info("api_key_verify_failed", email=email_lower, reason="no_challenge")
            raise InvalidOrExpiredChallengeError()

        challenge = credential.challenge
        if now > ensure_utc(challenge.expires_at):
            log.info("api_key_verify_failed", email=email_lower, reason="expired")
            raise InvalidOrExpiredChallengeError()
        if not verify_code(code, challenge.code_hash):
            log.info("api_key_verify_failed", email=email_lower, reason="mismatch")
            raise InvalidOrExpiredChallengeError()

        attempts = max(1, self._settings.upsert_max_attempts)
        api_key = None
        for attempt in range(1, attempts + 1):
            candidate = generate_api_key(self._settings.api_key_length)
            try:
                issued = await self._repo.issue_key(
                    credential.id,
                    expected_code_hash=challenge.code_hash,
                    api_key=candidate,
                    now=now,
                )
            except DuplicateKeyError:
                log.warning("api_key_collision", attempt=attempt)
                continue
            if not issued:
                log.info("api_key_verify_failed", email=email_lower, reason="consumed")
                raise InvalidOrExpiredChallengeError()
            api_key = candidate
            break

        if api_key is None:
            raise ConflictError("Could not issue an API key, please retry.")

        display_email = credential.email or email_lower
        sent = await self._email.send_api_key(display_email, api_key)
        log.info(
            "api_key_issued",
            email=email_lower,
            api_key_prefix=key_prefix(api_key),
            email_sent=sent,
        )
        return api_key

    async def expire(self, credential: ApiCredentialDoc) -> None:
        """Notify and delete an inactive credential."""
        recipient = credential.email or credential.email_lower
        sent = await self._email.send_expiry_notice(recipient)
        deleted = await self._repo.delete(credential.id)
        log.info(
            "api_key_expired_inactivity",
            email=credential.email_lower,
            last_call_at=credential.last_call_at.isoformat()
            if credential.last_call_at
            else None,
            deleted=deleted,
            email_sent=sent,
        )

    async def sweep_inactive(self, now: datetime | None = None) -> int:
        """Delete every credential idle past the threshold; return how many."""
        now = now or self._clock()
        cutoff = now - self.inactivity_threshold
        expired = 0
        for credential in await self._repo.find_inactive(cutoff):
            await self.expire(credential)
            expired += 1
        log.info("inactive_sweep_completed", cutoff=cutoff.isoformat(), expired=expired)
        return expired
