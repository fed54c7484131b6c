# custody/verify/verifier.py
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Type, Union

from custody.core.errors import (
    CanonicalizationError,
    CustodyError,
    DigestMismatch,
    LinkMismatch,
    MalformedRecord,
    SignatureInvalid,
    StoreNotFound,
)
from custody.core.types import GENESIS, PROFILES, ChainRecord, CustodyEvent
from custody.crypto.hashing import record_digest
from custody.crypto.keys import AgentKeyPair
from custody.crypto.signing import verify_record_signature
from custody.storage import StorageBackend
from custody.storage.jsonl import JSONLStorage, parse_record

KeyLike = Union[AgentKeyPair, str, bytes]

logger = logging.getLogger(__name__)

# Per-profile names of the link and digest fields, used in failure reasons.
_FIELD_NAMES = {
    "event": ("previousHash", "currentHash"),
    "envelope": ("prev_event_hash", "event_hash"),
}


def _as_verifier(key: KeyLike) -> AgentKeyPair:
    return key if isinstance(key, AgentKeyPair) else AgentKeyPair.from_public_pem(key)


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    first_corrupted_index: Optional[int] = None
    reason: Optional[str] = None
    kind: Optional[str] = None      # one of the custody.core.errors codes
    checked: int = 0

    def __bool__(self):
        return self.ok

    def __str__(self):
        if self.ok:
            return f"Chain is valid ✓ ({self.checked} records)"
        return f"Verification FAILED at [{self.first_corrupted_index}] {self.kind}: {self.reason}"

    @classmethod
    def from_error(cls, index: int, error: CustodyError) -> "VerificationResult":
        """Failure result at ``index`` classified by the error's code."""
        return cls(False, index, error.message, error.code, checked=index)

    def as_dict(self) -> dict:
        return {
            "ok": self.ok,
            "firstCorruptedIndex": self.first_corrupted_index,
            "reason": self.reason,
            "kind": self.kind,
            "checked": self.checked,
        }


class ChainVerifier:
    """
    Offline verifier for custody logs.

    Replays records from GENESIS, checking each previous link and recomputing
    each digest, and stops at the first corruption: everything after a broken
    link is unverified. When a public key is given, signatures are checked too.
    """

    def __init__(
        self,
        record_type: Union[str, Type[ChainRecord]] = CustodyEvent,
        public_key: Optional[KeyLike] = None,
        trusted_keys: Optional[Dict[str, KeyLike]] = None,
    ):
        """
        public_key: one key that must have signed every record.
        trusted_keys: signer id (envelope ``actor.key_id`` or event ``agentId``)
        → public key, for chains written by several agents.
        """
        if isinstance(record_type, str):
            if record_type not in PROFILES:
                raise ValueError(f"Unknown record profile: {record_type}")
            record_type = PROFILES[record_type]
        self.record_type = record_type
        self.public_key = _as_verifier(public_key) if public_key is not None else None
        self.trusted_keys = {k: _as_verifier(v) for k, v in (trusted_keys or {}).items()}

    @property
    def checks_signatures(self) -> bool:
        return self.public_key is not None or bool(self.trusted_keys)

    def _check_signature(self, record: ChainRecord) -> Optional[SignatureInvalid]:
        key = self.trusted_keys.get(record.signer_id, self.public_key)
        if key is None:
            return SignatureInvalid(f"no trusted key for '{record.signer_id}'", signer=record.signer_id)
        if not verify_record_signature(record, key):
            return SignatureInvalid(signer=record.signer_id)
        return None

    def _fail(self, index: int, error: CustodyError) -> VerificationResult:
        logger.warning("Chain verification failed at index %d: %s", index, error)
        return VerificationResult.from_error(index, error)

    def verify(self, records: Iterable[Union[ChainRecord, MalformedRecord]]) -> VerificationResult:
        """
        Verify an ordered sequence of records. A MalformedRecord in the
        sequence stands for a record that failed to parse at that position.
        """
        link_name, digest_name = _FIELD_NAMES[self.record_type.PROFILE]
        expected_prev = GENESIS
        count = 0

        for i, record in enumerate(records):
            if isinstance(record, MalformedRecord):
                return self._fail(i, record)

            if record.prev_link != expected_prev:
                return self._fail(i, LinkMismatch(
                    f"{link_name} mismatch", expected=expected_prev, found=record.prev_link
                ))

            try:
                recomputed = record_digest(record, expected_prev)
            except CanonicalizationError as e:
                return self._fail(i, MalformedRecord(f"malformed record: {e.message}"))
            if recomputed != record.digest:
                return self._fail(i, DigestMismatch(
                    f"{digest_name} mismatch", expected=recomputed, found=record.digest
                ))

            if self.checks_signatures:
                problem = self._check_signature(record)
                if problem is not None:
                    return self._fail(i, problem)

            expected_prev = record.digest
            count += 1

        return VerificationResult(True, checked=count)

    def verify_lines(self, lines: Sequence[str]) -> VerificationResult:
        """Verify raw stored lines, classifying unparseable ones as malformed."""
        return self.verify(self._parse_each(lines))

    def _parse_each(self, lines: Sequence[str]):
        for line in lines:
            try:
                yield parse_record(line, self.record_type)
            except MalformedRecord as e:
                yield e

    def verify_from_storage(self, storage: StorageBackend) -> VerificationResult:
        try:
            lines = storage.load_lines()
        except StoreNotFound as e:
            logger.warning("Cannot verify: %s", e)
            return VerificationResult.from_error(0, e)
        return self.verify_lines(lines)

    def verify_file(self, path: Union[str, Path]) -> VerificationResult:
        """A missing or unreadable file is a StoreNotFound failure, never an empty success."""
        storage = JSONLStorage(path)
        try:
            return self.verify_from_storage(storage)
        finally:
            storage.close()


def verify_chain(path: Union[str, Path], record_type: Union[str, Type[ChainRecord]] = CustodyEvent) -> VerificationResult:
    """Shorthand for ``ChainVerifier(record_type).verify_file(path)``."""
    return ChainVerifier(record_type).verify_file(path)
