"""OpenPGP keyrings built from armored or base64-encoded transferable public keys."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from pgpy import PGPKey

from commit_trust.exceptions import KeyParseError


def fingerprint_hex(key: PGPKey) -> str:
    return str(key.fingerprint).replace(" ", "").upper()


def key_id_of(key: PGPKey) -> str:
    """Key id of a v4 key: the low 64 bits of its fingerprint."""
    return fingerprint_hex(key)[-16:]


def fingerprint_b64(key: PGPKey) -> str:
    return base64.b64encode(bytes.fromhex(fingerprint_hex(key))).decode("ascii")


def primary_user_name(key: PGPKey) -> str:
    userids = list(key.userids)
    for uid in userids:
        if uid.is_primary:
            return uid.name
    return userids[0].name if userids else ""


@dataclass(frozen=True, eq=False)
class Keyring:
    """An ordered set of primary public keys (with their subkeys)."""

    keys: tuple[PGPKey, ...]

    @classmethod
    def from_armored(cls, armored_key: str) -> "Keyring":
        """Parse an ASCII-armored public key block. Raises KeyParseError."""
        return cls._load(armored_key)

    @classmethod
    def from_base64(cls, base64_key: str) -> "Keyring":
        """Parse a base64-encoded binary transferable public key. Raises KeyParseError."""
        try:
            blob = base64.b64decode(base64_key, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise KeyParseError(f"failed to parse key: {exc}") from exc
        return cls._load(blob)

    @classmethod
    def _load(cls, blob: Union[str, bytes]) -> "Keyring":
        if not blob:
            raise KeyParseError("failed to parse key: no key data")
        try:
            loaded = PGPKey.from_blob(blob)
        except Exception as exc:
            raise KeyParseError(f"failed to parse key: {exc}") from exc

        primary, others = loaded if isinstance(loaded, tuple) else (loaded, {})
        keys = [primary]
        seen = {fingerprint_hex(primary)}
        for other in (others or {}).values():
            if not isinstance(other, PGPKey) or not other.is_primary:
                continue
            fp = fingerprint_hex(other)
            if fp not in seen:
                seen.add(fp)
                keys.append(other)

        for key in keys:
            if not key.is_public:
                raise KeyParseError(
                    f"failed to parse key: {key_id_of(key)} is a secret key, expected a public key"
                )
        return cls(keys=tuple(keys))

    def __iter__(self) -> Iterator[PGPKey]:
        return iter(self.keys)

    def __len__(self) -> int:
        return len(self.keys)

    @property
    def key_ids(self) -> list[str]:
        return [key_id_of(k) for k in self.keys]

    def find(self, key_id: str) -> Optional[tuple[PGPKey, PGPKey]]:
        """
        Look up the key that issued a signature.

        Returns:
            ``(primary, signing_key)`` where ``signing_key`` is the primary key
            itself or one of its subkeys, or ``None`` if no key matches.
        """
        wanted = key_id.upper()
        for primary in self.keys:
            if key_id_of(primary) == wanted:
                return primary, primary
            for subkey in primary.subkeys.values():
                if key_id_of(subkey) == wanted:
                    return primary, subkey
        return None
