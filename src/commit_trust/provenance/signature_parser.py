"""
Detached OpenPGP signature parsing.

A commit signature is an ASCII-armored block holding exactly one signature
packet. The issuer key id is what the remote authority is asked about, so a
signature without one cannot be authorized.
"""

from __future__ import annotations

from dataclasses import dataclass

from pgpy import PGPSignature
from pgpy.constants import PacketTag
from pgpy.packet import Packet

from commit_trust.exceptions import SignatureParseError

_ARMOR_MAGIC = "SIGNATURE"


@dataclass(frozen=True, eq=False)
class SignatureEnvelope:
    """Parsed signature: canonical issuer key id plus the material to re-verify it."""

    key_id: str
    armored: str
    signature: PGPSignature


def format_key_id(key_id: int | str) -> str:
    """Canonical PGP key id: 16 upper-case hex characters, zero padded."""
    if isinstance(key_id, str):
        key_id = int(key_id.replace(" ", ""), 16)
    return f"{key_id:016X}"


def parse_signature(armored_signature: str) -> SignatureEnvelope:
    """
    Parse an ASCII-armored detached signature and extract its issuer key id.

    Raises:
        SignatureParseError: on bad armor, a packet that is not a signature,
            trailing packets, or a missing issuer key id subpacket.
    """
    try:
        packet = _read_single_packet(armored_signature)
        key_id = _issuer_key_id(packet)
        signature = PGPSignature.from_blob(armored_signature)
    except Exception as exc:
        raise SignatureParseError(f"failed to parse signature: {exc}") from exc

    return SignatureEnvelope(key_id=key_id, armored=armored_signature, signature=signature)


def parse_signature_issuer_key_id(armored_signature: str) -> str:
    return parse_signature(armored_signature).key_id


def _read_single_packet(armored_signature: str) -> Packet:
    try:
        unarmored = PGPSignature.ascii_unarmor(armored_signature)
    except Exception as exc:
        raise SignatureParseError(f"failed to decode armored signature: {exc}") from exc

    if unarmored.get("magic") != _ARMOR_MAGIC:
        raise SignatureParseError(
            f"failed to decode armored signature: unexpected armor type {unarmored.get('magic')!r}"
        )

    body = unarmored["body"]
    if not body:
        raise SignatureParseError("failed to read signature packet: empty body")

    # Packet() consumes the bytes it parses from the front of ``body``.
    try:
        packet = Packet(body)
    except Exception as exc:
        raise SignatureParseError(f"failed to read signature packet: {exc}") from exc

    if packet.header.tag != PacketTag.Signature or not hasattr(packet, "subpackets"):
        raise SignatureParseError("packet is not a signature")

    if len(body) > 0:
        raise SignatureParseError("signature contains unexpected packets")

    return packet


def _issuer_key_id(packet: Packet) -> str:
    issuers = packet.subpackets["Issuer"]
    if issuers:
        return format_key_id(str(issuers[-1].issuer))

    # v4 signatures may name the issuer only by fingerprint; the key id is its low 64 bits.
    fingerprints = packet.subpackets["IssuerFingerprint"]
    if fingerprints:
        fingerprint = str(fingerprints[-1].issuer_fingerprint).replace(" ", "")
        return format_key_id(fingerprint[-16:])

    raise SignatureParseError("signature missing issuer key id subpacket")
