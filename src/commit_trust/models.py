"""Data models shared across commit_trust."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional, Union

OUTCOME_VERSION = "1"


class Result(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class VerifiedBy(str, Enum):
    EMAIL_ADDRESS = "EMAIL_ADDRESS"
    THIRD_PARTY_KEY = "THIRD_PARTY_KEY"
    BI_MANAGED_KEY = "BI_MANAGED_KEY"


@dataclass(frozen=True)
class Actor:
    name: str
    email: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email_address": self.email,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class CommitRecord:
    """A commit as fetched from the repository. ``payload`` is the signed byte string."""

    commit_hash: str
    tree_hash: str
    parent_hashes: tuple[str, ...]
    author: Actor
    committer: Actor
    signature: Optional[str]
    payload: bytes

    @property
    def signed(self) -> bool:
        return bool(self.signature)

    def snapshot(self, signature_key_id: Optional[str] = None) -> dict[str, Any]:
        data: dict[str, Any] = {
            "commit_hash": self.commit_hash,
            "tree_hash": self.tree_hash,
            "parent_hashes": [h for h in self.parent_hashes if h],
            "author": self.author.to_dict(),
            "committer": self.committer.to_dict(),
            "signed": self.signed,
        }
        if signature_key_id:
            data["signature_key_id"] = signature_key_id
        return data


# ── Verification details (exactly one variant per passing outcome) ────────────


@dataclass(frozen=True)
class EmailAddressVerification:
    verified_by: ClassVar[VerifiedBy] = VerifiedBy.EMAIL_ADDRESS

    email_address: str

    def to_dict(self) -> dict[str, Any]:
        return {"verified_by": self.verified_by.value, "email_address": self.email_address}


@dataclass(frozen=True)
class ThirdPartyKeyVerification:
    verified_by: ClassVar[VerifiedBy] = VerifiedBy.THIRD_PARTY_KEY

    key_id: str
    fingerprint: str
    user_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "verified_by": self.verified_by.value,
            "third_party_key": {
                "key_id": self.key_id,
                "fingerprint": self.fingerprint,
                "user_id": self.user_id,
            },
        }


@dataclass(frozen=True)
class ManagedKeyVerification:
    verified_by: ClassVar[VerifiedBy] = VerifiedBy.BI_MANAGED_KEY

    key_id: str
    email_address: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "verified_by": self.verified_by.value,
            "bi_managed_key": {
                "key_id": self.key_id,
                "email_address": self.email_address,
            },
        }


VerificationDetails = Union[
    EmailAddressVerification,
    ThirdPartyKeyVerification,
    ManagedKeyVerification,
]


@dataclass(frozen=True)
class OutcomeError:
    desc: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "OutcomeError":
        return cls(desc=str(exc))

    def to_dict(self) -> dict[str, str]:
        return {"desc": self.desc}


@dataclass(frozen=True)
class Outcome:
    """Terminal artifact of one verification run."""

    repository: str
    result: Result
    desc: str
    commit: Optional[CommitRecord] = None
    signature_key_id: Optional[str] = None
    verification_details: Optional[VerificationDetails] = None
    errors: tuple[OutcomeError, ...] = field(default_factory=tuple)
    version: str = OUTCOME_VERSION

    def __post_init__(self) -> None:
        if self.result is Result.PASS and self.verification_details is None:
            raise ValueError("a passing outcome requires verification details")
        if self.result is Result.FAIL:
            if not self.errors:
                raise ValueError("a failing outcome requires at least one error")
            if self.verification_details is not None:
                raise ValueError("a failing outcome cannot carry verification details")

    @classmethod
    def passed(
        cls,
        repository: str,
        desc: str,
        details: VerificationDetails,
        *,
        commit: Optional[CommitRecord] = None,
        signature_key_id: Optional[str] = None,
        errors: tuple[OutcomeError, ...] = (),
    ) -> "Outcome":
        return cls(
            repository=repository,
            result=Result.PASS,
            desc=desc,
            commit=commit,
            signature_key_id=signature_key_id,
            verification_details=details,
            errors=tuple(errors),
        )

    @classmethod
    def failed(
        cls,
        repository: str,
        desc: str,
        errors: tuple[OutcomeError, ...],
        *,
        commit: Optional[CommitRecord] = None,
        signature_key_id: Optional[str] = None,
    ) -> "Outcome":
        return cls(
            repository=repository,
            result=Result.FAIL,
            desc=desc,
            commit=commit,
            signature_key_id=signature_key_id,
            errors=tuple(errors),
        )

    @property
    def passed_verification(self) -> bool:
        return self.result is Result.PASS

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": self.version,
            "repository": self.repository,
        }
        if self.commit is not None:
            data["commit"] = self.commit.snapshot(self.signature_key_id)
        data["result"] = self.result.value
        data["desc"] = self.desc
        if self.verification_details is not None:
            data["verification_details"] = self.verification_details.to_dict()
        data["errors"] = [e.to_dict() for e in self.errors]
        return data

    def summary(self) -> str:
        lines = [
            f"Repository:   {self.repository}",
            f"Result:       {self.result.value}",
            f"Description:  {self.desc}",
        ]
        if self.commit is not None:
            lines.append(f"Commit:       {self.commit.commit_hash}")
            lines.append(
                f"Committer:    {self.commit.committer.name} <{self.commit.committer.email}>"
            )
            lines.append(f"Signed:       {'yes' if self.commit.signed else 'no'}")
        if self.signature_key_id:
            lines.append(f"Signing key:  {self.signature_key_id}")
        if self.verification_details is not None:
            lines.append(f"Verified by:  {self.verification_details.verified_by.value}")
        if self.errors:
            lines.append("Errors:")
            for e in self.errors:
                lines.append(f"  [ERROR] {e.desc}")
        return "\n".join(lines)
