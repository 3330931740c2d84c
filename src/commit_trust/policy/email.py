"""Email address syntax validation for allowlist entries."""

from __future__ import annotations

import re

from commit_trust.exceptions import InvalidEmailAddressError

# https://html.spec.whatwg.org/multipage/input.html#valid-e-mail-address
_EMAIL_RE = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*"
)


def validate_email(address: str) -> None:
    """Raise InvalidEmailAddressError unless ``address`` is a syntactically valid email."""
    if not isinstance(address, str) or not 3 <= len(address) <= 254:
        raise InvalidEmailAddressError(f"invalid email address format: {address!r}")
    if _EMAIL_RE.fullmatch(address) is None:
        raise InvalidEmailAddressError(f"invalid email address format: {address!r}")


def is_valid_email(address: str) -> bool:
    try:
        validate_email(address)
    except InvalidEmailAddressError:
        return False
    return True
