"""Custom exceptions for commit_trust."""

from __future__ import annotations

from typing import Optional


class CommitTrustError(Exception):
    """Base class for all commit_trust errors."""


class ConfigError(CommitTrustError):
    """Raised when required run configuration is missing or unusable."""


class MissingConfigFieldError(ConfigError):
    """A required configuration field is empty."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"missing config field: {field}")


class AllowlistLoadError(ConfigError):
    """Raised when the allowlist configuration file cannot be read or parsed."""


class CommitAccessError(CommitTrustError):
    """Raised when the commit under test cannot be retrieved."""


class AllowlistEntryError(CommitTrustError):
    """A single allowlist entry is malformed. Never fatal on its own."""


class InvalidEmailAddressError(AllowlistEntryError):
    """Raised when an allowlisted email address fails syntax validation."""


class KeyParseError(AllowlistEntryError):
    """Raised when a PGP public key cannot be parsed into a keyring."""


class VerificationError(CommitTrustError):
    """Base class for fatal failures of the signature pipeline."""


class UnsignedCommitError(VerificationError):
    """Raised when no trust source applies and the commit carries no signature."""

    def __init__(self, message: str = "commit is not signed") -> None:
        super().__init__(message)


class SignatureParseError(VerificationError):
    """Raised on bad armor, a non-signature packet, trailing packets or a missing issuer."""


class AuthorityDeniedError(VerificationError):
    """Raised when the remote authority answers authorized=false."""

    def __init__(self, authority_message: str) -> None:
        self.authority_message = authority_message
        super().__init__(f"authorization denied: {authority_message}")


class SignatureMismatchError(VerificationError):
    """Raised when a signature does not verify against the supplied key."""


class TransportError(CommitTrustError):
    """Raised when the remote authority cannot be reached or answers badly."""


class BadResponseError(TransportError):
    """Raised when an unexpected response is received from the authority API."""

    def __init__(
        self,
        method: str,
        url: str,
        status_code: int,
        body: bytes,
        reason: str = "",
        cause: Optional[str] = None,
    ) -> None:
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body = body
        self.reason = reason
        self.cause = cause
        text = body.decode("utf-8", errors="replace")
        super().__init__(
            f"bad response from {method} {url}: {status_code} {reason}: (body: {text}): {cause}"
        )
