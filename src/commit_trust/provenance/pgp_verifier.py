"""
Detached signature verification.

Two verifiers share one primitive, ``check_signature``:
  SignatureVerifier:  key material handed over by the remote authority; any failure is fatal.
  ThirdPartyVerifier: allowlisted keyrings tried in order; no match defers to the next trust source.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

from pgpy import PGPKey
from pgpy.errors import PGPError

from commit_trust.exceptions import KeyParseError, SignatureMismatchError, SignatureParseError
from commit_trust.models import ThirdPartyKeyVerification
from commit_trust.provenance.keyring import (
    Keyring,
    fingerprint_b64,
    key_id_of,
    primary_user_name,
)
from commit_trust.provenance.signature_parser import SignatureEnvelope, parse_signature

logger = logging.getLogger(__name__)


def check_signature(
    keyring: Keyring,
    envelope: SignatureEnvelope,
    payload: bytes,
) -> tuple[PGPKey, PGPKey]:
    """
    Verify ``envelope`` over ``payload`` with the keyring key that issued it.

    Returns:
        ``(primary, signing_key)`` for the key that produced the signature.

    Raises:
        SignatureMismatchError: if no key in the keyring issued the signature,
            or the signature does not match the payload.
    """
    match = keyring.find(envelope.key_id)
    if match is None:
        raise SignatureMismatchError("signature made by unknown entity")
    primary, signing_key = match

    try:
        verification = signing_key.verify(payload, envelope.signature)
    except (PGPError, ValueError, NotImplementedError) as exc:
        raise SignatureMismatchError(str(exc)) from exc

    if not verification or not list(verification.good_signatures):
        raise SignatureMismatchError(f"invalid signature from key {envelope.key_id}")
    return primary, signing_key


class SignatureVerifier:
    """Checks a signature against the single key supplied by the remote authority."""

    def verify(self, base64_key: str, envelope: SignatureEnvelope, payload: bytes) -> None:
        try:
            keyring = Keyring.from_base64(base64_key)
        except KeyParseError as exc:
            raise SignatureMismatchError(f"signature verification failed: {exc}") from exc

        try:
            check_signature(keyring, envelope, payload)
        except SignatureMismatchError as exc:
            raise SignatureMismatchError(f"signature verification failed: {exc}") from exc


class ThirdPartyVerifier:
    """Checks a signature against allowlisted third-party keyrings, first match wins."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def verify(
        self,
        keyrings: Sequence[Keyring],
        payload: bytes,
        signature: Union[str, SignatureEnvelope, None],
    ) -> Optional[ThirdPartyKeyVerification]:
        """
        Returns:
            ThirdPartyKeyVerification for the first keyring that validates the
            signature, or ``None`` when the commit is unsigned, the signature
            cannot be parsed, or no keyring matches.
        """
        if not signature or not keyrings:
            return None

        if isinstance(signature, SignatureEnvelope):
            envelope = signature
        else:
            try:
                envelope = parse_signature(signature)
            except SignatureParseError as exc:
                self._log.debug("Third party key check skipped: %s", exc)
                return None

        for index, keyring in enumerate(keyrings):
            try:
                primary, _ = check_signature(keyring, envelope, payload)
            except SignatureMismatchError as exc:
                self._log.debug("Third party keyring #%d did not validate: %s", index, exc)
                continue

            details = ThirdPartyKeyVerification(
                key_id=key_id_of(primary),
                fingerprint=fingerprint_b64(primary),
                user_id=primary_user_name(primary),
            )
            self._log.info(
                "Signature made using key %s with fingerprint %s from %s",
                details.key_id,
                details.fingerprint,
                details.user_id,
            )
            return details
        return None
