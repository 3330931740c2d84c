"""
Allowlist loading, scoping and email bypass.

The allowlist has two lists:
  1. Email addresses allowed to bypass signature verification.
  2. Third party public keys (armored) accepted as signers.

Each entry may name the repositories it applies to; no repositories means all.
Resolution is partial-failure: a malformed entry is reported and skipped, it
never disables the rest of the allowlist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional, Type, TypeVar, Union

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from commit_trust.exceptions import AllowlistEntryError, AllowlistLoadError, KeyParseError
from commit_trust.policy.email import validate_email
from commit_trust.provenance.keyring import Keyring

logger = logging.getLogger(__name__)


class _ScopedEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    repositories: tuple[str, ...] = ()

    @field_validator("repositories", mode="before")
    @classmethod
    def _none_is_all(cls, value):
        return () if value is None else value

    def applies_to(self, repository: str) -> bool:
        return not self.repositories or repository in self.repositories


class EmailAddressEntry(_ScopedEntry):
    email_address: str


class ThirdPartyKeyEntry(_ScopedEntry):
    key: str


class Allowlist(BaseModel):
    """
    Allowlist as configured. Read-only once loaded.

    Only the two top-level lists are checked here. Entries stay as loaded
    (mappings from YAML, or entry models) and are validated one by one in
    resolve_allowlist(), so a single malformed entry cannot reject the file.
    """

    model_config = ConfigDict(frozen=True)

    email_addresses: tuple[Any, ...] = ()
    third_party_keys: tuple[Any, ...] = ()

    @field_validator("email_addresses", "third_party_keys", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return () if value is None else value


@dataclass(frozen=True)
class EffectiveAllowlist:
    """Entries applicable to one repository, validated and parsed."""

    email_addresses: tuple[str, ...] = ()
    keyrings: tuple[Keyring, ...] = ()

    @property
    def empty(self) -> bool:
        return not self.email_addresses and not self.keyrings


@dataclass(frozen=True)
class AllowlistResolution:
    allowlist: EffectiveAllowlist
    errors: tuple[AllowlistEntryError, ...] = field(default_factory=tuple)


def parse_allowlist(text: str) -> Allowlist:
    """Parse allowlist YAML text. Raises AllowlistLoadError on malformed input."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise AllowlistLoadError(f"failed to unmarshal allowlist yaml configuration file: {exc}") from exc

    if data is None:
        return Allowlist()
    if not isinstance(data, dict):
        raise AllowlistLoadError(
            "failed to unmarshal allowlist yaml configuration file: expected a mapping at the top level"
        )

    try:
        return Allowlist.model_validate(data)
    except ValidationError as exc:
        raise AllowlistLoadError(f"failed to unmarshal allowlist yaml configuration file: {exc}") from exc


def load_allowlist(path: Union[str, Path]) -> Allowlist:
    """Read and parse the allowlist configuration file at ``path``."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise AllowlistLoadError(
            f"failed to read allowlist yaml configuration file at '{path}': {exc}"
        ) from exc
    return parse_allowlist(text)


_Entry = TypeVar("_Entry", bound=_ScopedEntry)


def _entry(model: Type[_Entry], raw: Any, where: str) -> _Entry:
    if isinstance(raw, model):
        return raw
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'entry'}: {err['msg']}" for err in exc.errors()
        )
        raise AllowlistEntryError(f"{where}: invalid entry: {problems}") from exc


def resolve_allowlist(
    allowlist: Optional[Allowlist],
    repository: str,
) -> AllowlistResolution:
    """
    Filter ``allowlist`` down to the entries that apply to ``repository``.

    Each entry's shape is checked first; an entry with the wrong shape cannot
    be scoped, so it is always reported. Out-of-scope entries are then dropped
    before content validation. In-scope entries that fail validation (bad
    email syntax, unparsable key) are excluded and their errors returned
    alongside the valid entries.
    """
    if allowlist is None:
        return AllowlistResolution(allowlist=EffectiveAllowlist())

    errors: list[AllowlistEntryError] = []
    emails: list[str] = []
    keyrings: list[Keyring] = []

    for index, raw in enumerate(allowlist.email_addresses):
        where = f"allowlist email_addresses[{index}]"
        try:
            entry = _entry(EmailAddressEntry, raw, where)
        except AllowlistEntryError as exc:
            errors.append(exc)
            continue
        if not entry.applies_to(repository):
            continue
        try:
            validate_email(entry.email_address)
        except AllowlistEntryError as exc:
            errors.append(type(exc)(f"{where}: {exc}"))
            continue
        emails.append(entry.email_address)

    for index, raw in enumerate(allowlist.third_party_keys):
        where = f"allowlist third_party_keys[{index}]"
        try:
            entry = _entry(ThirdPartyKeyEntry, raw, where)
        except AllowlistEntryError as exc:
            errors.append(exc)
            continue
        if not entry.applies_to(repository):
            continue
        try:
            keyrings.append(Keyring.from_armored(entry.key))
        except KeyParseError as exc:
            errors.append(KeyParseError(f"{where}: {exc}"))

    for err in errors:
        logger.warning("Skipping allowlist entry: %s", err)

    return AllowlistResolution(
        allowlist=EffectiveAllowlist(email_addresses=tuple(emails), keyrings=tuple(keyrings)),
        errors=tuple(errors),
    )


def email_bypass(committer_email: str, allowed: Iterable[str]) -> bool:
    """True if ``committer_email`` equals an allowlisted address, ignoring case."""
    want = committer_email.lower()
    return any(want == address.lower() for address in allowed)
