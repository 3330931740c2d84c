"""
Decision engine.

Fixed pipeline order, one pass, first success wins:
  1. Email bypass          (allowlisted committer, signature not required)
  2. Third party keys      (allowlisted signers)
  3. Require a signature
  4. Parse the signature   (issuer key id)
  5. Remote authorization  (key id + committer email)
  6. Verify the signature  (against the authority's key)

Each step is a state with one transition function. PASS and FAIL are terminal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence

from commit_trust.authority.client import AuthorityClient, Authorization
from commit_trust.exceptions import (
    AuthorityDeniedError,
    CommitTrustError,
    SignatureMismatchError,
    SignatureParseError,
    TransportError,
    UnsignedCommitError,
)
from commit_trust.models import (
    CommitRecord,
    EmailAddressVerification,
    ManagedKeyVerification,
    Outcome,
    OutcomeError,
    VerificationDetails,
)
from commit_trust.policy.allowlist import EffectiveAllowlist, email_bypass
from commit_trust.provenance.pgp_verifier import SignatureVerifier, ThirdPartyVerifier
from commit_trust.provenance.signature_parser import SignatureEnvelope, parse_signature

logger = logging.getLogger(__name__)


class State(str, Enum):
    START = "START"
    CHECK_EMAIL_BYPASS = "CHECK_EMAIL_BYPASS"
    CHECK_THIRD_PARTY_KEYS = "CHECK_THIRD_PARTY_KEYS"
    REQUIRE_SIGNATURE = "REQUIRE_SIGNATURE"
    PARSE_SIGNATURE = "PARSE_SIGNATURE"
    REMOTE_AUTHORIZE = "REMOTE_AUTHORIZE"
    VERIFY_SIGNATURE = "VERIFY_SIGNATURE"
    PASS = "PASS"
    FAIL = "FAIL"

    @property
    def terminal(self) -> bool:
        return self in (State.PASS, State.FAIL)


DESC_EMAIL_BYPASS = "Committer email address is on the allowlist, signature verification bypassed"
DESC_THIRD_PARTY_KEY = "Commit is signed by an allowlisted third party key"
DESC_MANAGED_KEY = "Commit is signed by a key authorized for the committer"
DESC_NOT_SIGNED = "Commit is not signed"
DESC_PARSE_FAILED = "Failed to parse commit signature"
DESC_AUTHORITY_UNAVAILABLE = "Failed to get authorization for the signing key"
DESC_AUTHORITY_DENIED = "Signing key is not authorized for the committer"
DESC_SIGNATURE_MISMATCH = "Commit signature does not match the authorized key"


@dataclass
class RunState:
    """Mutable working state of one evaluation. Discarded once the Outcome is built."""

    commit: CommitRecord
    allowlist: EffectiveAllowlist
    state: State = State.START
    trace: list[State] = field(default_factory=list)
    envelope: Optional[SignatureEnvelope] = None
    authorization: Optional[Authorization] = None
    details: Optional[VerificationDetails] = None
    desc: str = ""
    error: Optional[CommitTrustError] = None

    def succeed(self, details: VerificationDetails, desc: str) -> State:
        self.details = details
        self.desc = desc
        return State.PASS

    def fail(self, error: CommitTrustError, desc: str) -> State:
        self.error = error
        self.desc = desc
        return State.FAIL


class DecisionEngine:
    """
    Combines the trust sources into a single Outcome.

    Args:
        authority: Remote authority used when no allowlist source applies.
        log: Logger receiving transition and decision events.
        timeout: Seconds allowed for the remote authority call.
        third_party_verifier: Override for the allowlisted key check.
        signature_verifier: Override for the authority key check.
    """

    def __init__(
        self,
        authority: AuthorityClient,
        *,
        log: Optional[logging.Logger] = None,
        timeout: Optional[float] = None,
        third_party_verifier: Optional[ThirdPartyVerifier] = None,
        signature_verifier: Optional[SignatureVerifier] = None,
    ) -> None:
        self.authority = authority
        self.timeout = timeout
        self._log = log or logger
        self._third_party = third_party_verifier or ThirdPartyVerifier(log=self._log)
        self._signature_verifier = signature_verifier or SignatureVerifier()
        self._transitions: dict[State, Callable[[RunState], State]] = {
            State.START: self._start,
            State.CHECK_EMAIL_BYPASS: self._check_email_bypass,
            State.CHECK_THIRD_PARTY_KEYS: self._check_third_party_keys,
            State.REQUIRE_SIGNATURE: self._require_signature,
            State.PARSE_SIGNATURE: self._parse_signature,
            State.REMOTE_AUTHORIZE: self._remote_authorize,
            State.VERIFY_SIGNATURE: self._verify_signature,
        }

    def evaluate(
        self,
        repository: str,
        commit: CommitRecord,
        allowlist: Optional[EffectiveAllowlist] = None,
        errors: Sequence[BaseException] = (),
    ) -> Outcome:
        """
        Run the pipeline for ``commit`` and build its Outcome.

        Args:
            repository: Name of the repository under test.
            commit: The commit to decide on.
            allowlist: Allowlist entries already resolved for ``repository``.
            errors: Non-fatal errors gathered before evaluation (allowlist
                entries). Recorded on the Outcome whatever the result.
        """
        run = RunState(commit=commit, allowlist=allowlist or EffectiveAllowlist())
        while not run.state.terminal:
            run.trace.append(run.state)
            next_state = self.step(run)
            self._log.debug("%s -> %s", run.state.value, next_state.value)
            run.state = next_state
        run.trace.append(run.state)
        return self._outcome(repository, run, errors)

    def step(self, run: RunState) -> State:
        """Apply the transition function of the current state."""
        return self._transitions[run.state](run)

    # ── Transitions ──────────────────────────────────────────────────────────

    def _start(self, run: RunState) -> State:
        c = run.commit
        self._log.info(
            "Verifying commit %s by %s <%s>", c.commit_hash, c.committer.name, c.committer.email
        )
        return State.CHECK_EMAIL_BYPASS

    def _check_email_bypass(self, run: RunState) -> State:
        email = run.commit.committer.email
        if run.allowlist.email_addresses and email_bypass(email, run.allowlist.email_addresses):
            self._log.info(
                "Committer email %r is on the email address allowlist, bypassing signature verification",
                email,
            )
            return run.succeed(EmailAddressVerification(email_address=email), DESC_EMAIL_BYPASS)
        return State.CHECK_THIRD_PARTY_KEYS

    def _check_third_party_keys(self, run: RunState) -> State:
        if not run.allowlist.keyrings:
            return State.REQUIRE_SIGNATURE
        if not run.commit.signed:
            self._log.info("Commit is unsigned, skipping third party keys")
            return State.REQUIRE_SIGNATURE

        self._log.info("Verifying commit signature with %d third party key(s)", len(run.allowlist.keyrings))
        details = self._third_party.verify(
            run.allowlist.keyrings, run.commit.payload, run.commit.signature
        )
        if details is not None:
            return run.succeed(details, DESC_THIRD_PARTY_KEY)
        self._log.info("No third party key validated the signature, continuing")
        return State.REQUIRE_SIGNATURE

    def _require_signature(self, run: RunState) -> State:
        if not run.commit.signed:
            return run.fail(UnsignedCommitError(), DESC_NOT_SIGNED)
        return State.PARSE_SIGNATURE

    def _parse_signature(self, run: RunState) -> State:
        try:
            run.envelope = parse_signature(run.commit.signature or "")
        except SignatureParseError as exc:
            return run.fail(exc, DESC_PARSE_FAILED)
        return State.REMOTE_AUTHORIZE

    def _remote_authorize(self, run: RunState) -> State:
        if run.envelope is None:
            raise RuntimeError(f"{run.state.value} reached without a parsed signature")
        key_id = run.envelope.key_id
        email = run.commit.committer.email
        self._log.info("Getting authorization for key %s with committer email %r", key_id, email)

        try:
            authorization = self.authority.get_authorization(key_id, email, timeout=self.timeout)
        except TransportError as exc:
            return run.fail(
                TransportError(f"failed to get authorization: {exc}"), DESC_AUTHORITY_UNAVAILABLE
            )

        run.authorization = authorization
        if not authorization.authorized:
            return run.fail(AuthorityDeniedError(authorization.message), DESC_AUTHORITY_DENIED)
        return State.VERIFY_SIGNATURE

    def _verify_signature(self, run: RunState) -> State:
        if run.envelope is None or run.authorization is None:
            raise RuntimeError(f"{run.state.value} reached without a parsed signature and authorization")
        try:
            self._signature_verifier.verify(
                run.authorization.pgp_key.base64_key, run.envelope, run.commit.payload
            )
        except SignatureMismatchError as exc:
            return run.fail(exc, DESC_SIGNATURE_MISMATCH)

        self._log.info("Commit is signed by a key authorized for the committer")
        return run.succeed(
            ManagedKeyVerification(key_id=run.envelope.key_id, email_address=run.commit.committer.email),
            DESC_MANAGED_KEY,
        )

    # ── Outcome ──────────────────────────────────────────────────────────────

    def _outcome(self, repository: str, run: RunState, errors: Sequence[BaseException]) -> Outcome:
        recorded = [OutcomeError.from_exception(e) for e in errors]
        key_id = run.envelope.key_id if run.envelope else None

        if run.state is State.PASS:
            if run.details is None:
                raise RuntimeError("run passed without verification details")
            return Outcome.passed(
                repository,
                run.desc,
                run.details,
                commit=run.commit,
                signature_key_id=key_id,
                errors=tuple(recorded),
            )

        if run.error is None:
            raise RuntimeError(f"run ended in {run.state.value} without an error")
        self._log.warning("Commit verification failed: %s", run.error)
        recorded.append(OutcomeError.from_exception(run.error))
        return Outcome.failed(
            repository,
            run.desc,
            tuple(recorded),
            commit=run.commit,
            signature_key_id=key_id,
        )
