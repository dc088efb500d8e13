"""An off-chain worker that sends numbers back on chain and fetches remote data.

The worker rotates through four jobs by block number: sending a signed
transaction, an unsigned transaction, an unsigned transaction carrying a
signed payload, and fetching organisation information over HTTP.

Calls are plain tuples of the function name followed by its arguments, for
example ``("submit_number_unsigned", 7)``.

The ``signer`` given to :class:`OcwDemo` is either ``None``, meaning there is
no local key, or an object providing ``account``, ``public``,
``sign(message) -> signature`` and ``verify(message, signature, public) -> bool``.
The ``transaction_pool`` is called as ``transaction_pool(call, account)``,
where ``account`` is ``None`` for unsigned transactions, and raises to reject.
``fetch`` is called as ``fetch(url, headers, timeout_seconds)`` and returns
``(status_code, body_bytes)``.
"""

from __future__ import annotations

import json
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Hashable, MutableMapping

from palletry.runtime import DispatchError, Origin, System, ensure_none, ensure_signed

logger = logging.getLogger(__name__)

KEY_TYPE = b"demo"
NUM_VEC_LEN = 10
UNSIGNED_TXS_PRIORITY = 100

HTTP_REMOTE_REQUEST = "https://api.example.com/orgs/demo"
HTTP_HEADER_USER_AGENT = "ocw-demo"

FETCH_TIMEOUT_PERIOD = 3000  # milliseconds
LOCK_TIMEOUT_EXPIRATION = FETCH_TIMEOUT_PERIOD + 1000  # milliseconds
LOCK_BLOCK_EXPIRATION = 3  # blocks

ONCHAIN_TX_KEY = b"ocw-demo::storage::tx"
GH_INFO_KEY = b"ocw-demo::gh-info"
LOCK_KEY = b"ocw-demo::lock"
TAG_PREFIX = b"ocw-demo"

_TRANSACTION_TYPES = 4
_U32_MAX = 0xFFFF_FFFF
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF


class OffchainError(DispatchError):
    """Base class of the errors raised by the off-chain worker's jobs."""


class NoLocalAcctForSigning(OffchainError):
    """No local account is available to sign with."""


class OffchainSignedTxError(OffchainError):
    """Sending a signed transaction failed."""


class OffchainUnsignedTxError(OffchainError):
    """Sending an unsigned transaction failed."""


class OffchainUnsignedTxSignedPayloadError(OffchainError):
    """Sending an unsigned transaction with a signed payload failed."""


class HttpFetchingError(OffchainError):
    """Fetching or parsing the remote information failed."""


# --- compact SCALE encoding -------------------------------------------------


def _encode_compact(value: int) -> bytes:
    if value < 0:
        raise ValueError("compact values must not be negative")
    if value < 1 << 6:
        return bytes([value << 2])
    if value < 1 << 14:
        return ((value << 2) | 1).to_bytes(2, "little")
    if value < 1 << 30:
        return ((value << 2) | 2).to_bytes(4, "little")
    length = max(4, (value.bit_length() + 7) // 8)
    if length > 67:
        raise ValueError("value too large for compact encoding")
    return bytes([((length - 4) << 2) | 3]) + value.to_bytes(length, "little")


def _decode_compact(data: bytes, offset: int) -> tuple[int, int]:
    if offset >= len(data):
        raise ValueError("truncated compact value")
    mode = data[offset] & 0b11
    if mode == 3:
        length = (data[offset] >> 2) + 4
        raw = data[offset + 1 : offset + 1 + length]
        if len(raw) != length:
            raise ValueError("truncated compact value")
        return int.from_bytes(raw, "little"), offset + 1 + length
    width = {0: 1, 1: 2, 2: 4}[mode]
    raw = data[offset : offset + width]
    if len(raw) != width:
        raise ValueError("truncated compact value")
    return int.from_bytes(raw, "little") >> 2, offset + width


def _encode_bytes(value: bytes) -> bytes:
    return _encode_compact(len(value)) + value


def _decode_bytes(data: bytes, offset: int) -> tuple[bytes, int]:
    length, offset = _decode_compact(data, offset)
    raw = data[offset : offset + length]
    if len(raw) != length:
        raise ValueError("truncated byte string")
    return raw, offset + length


def _decode_uint(data: bytes, offset: int, width: int) -> tuple[int, int]:
    raw = data[offset : offset + width]
    if len(raw) != width:
        raise ValueError("truncated integer")
    return int.from_bytes(raw, "little"), offset + width


# --- data types -------------------------------------------------------------


@dataclass(frozen=True)
class Payload:
    """A number signed by a local key, submitted without a transaction signature."""

    number: int
    public: Any


def _payload_message(payload: Payload) -> bytes:
    return payload.number.to_bytes(8, "little") + bytes(payload.public)


@dataclass(frozen=True)
class IndexingData:
    """What a call writes to off-chain indexed storage: a label and the number."""

    label: bytes
    number: int

    def encode(self) -> bytes:
        return _encode_bytes(self.label) + self.number.to_bytes(8, "little")

    @classmethod
    def decode(cls, data: bytes) -> "IndexingData":
        """Decode an encoded value; raise ValueError if it is malformed."""
        label, offset = _decode_bytes(data, 0)
        number, offset = _decode_uint(data, offset, 8)
        if offset != len(data):
            raise ValueError("trailing bytes after IndexingData")
        return cls(label, number)


@dataclass(frozen=True)
class GithubInfo:
    """The part of an organisation's description that the worker keeps."""

    login: bytes
    blog: bytes
    public_repos: int

    @classmethod
    def from_json(cls, text: str) -> "GithubInfo":
        """Parse the JSON text; unknown fields are ignored. Raise ValueError if invalid."""
        document = json.loads(text)
        if not isinstance(document, dict):
            raise ValueError("expected a JSON object")
        login = document.get("login")
        blog = document.get("blog")
        repos = document.get("public_repos")
        if not isinstance(login, str) or not isinstance(blog, str):
            raise ValueError("login and blog must be strings")
        if isinstance(repos, bool) or not isinstance(repos, int):
            raise ValueError("public_repos must be an integer")
        if not 0 <= repos <= _U32_MAX:
            raise ValueError("public_repos is out of range")
        return cls(login.encode(), blog.encode(), repos)

    def __str__(self) -> str:
        return (
            f"{{ login: {self.login.decode()}, blog: {self.blog.decode()}, "
            f"public_repos: {self.public_repos} }}"
        )


def _encode_github_info(info: GithubInfo) -> bytes:
    return (
        _encode_bytes(info.login)
        + _encode_bytes(info.blog)
        + info.public_repos.to_bytes(4, "little")
    )


def _decode_github_info(data: bytes) -> GithubInfo:
    login, offset = _decode_bytes(data, 0)
    blog, offset = _decode_bytes(data, offset)
    repos, offset = _decode_uint(data, offset, 4)
    if offset != len(data):
        raise ValueError("trailing bytes after GithubInfo")
    return GithubInfo(login, blog, repos)


@dataclass(frozen=True)
class NewNumber:
    """A number was accepted; ``account`` is ``None`` for unsigned submissions."""

    account: Hashable | None
    number: int


class InvalidTransaction(Exception):
    """An unsigned transaction is rejected by validation."""

    BAD_PROOF = "BadProof"
    CALL = "Call"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class ValidTransaction:
    priority: int
    requires: tuple = ()
    provides: tuple = ()
    longevity: int = 0
    propagate: bool = True


def _valid_tx(tag: bytes) -> ValidTransaction:
    return ValidTransaction(
        priority=UNSIGNED_TXS_PRIORITY,
        provides=(_encode_bytes(TAG_PREFIX) + _encode_bytes(tag),),
        longevity=3,
        propagate=True,
    )


# --- storage lock -----------------------------------------------------------


class _LockGuard:
    """Holds a storage lock; releases it when the ``with`` block ends."""

    def __init__(self, storage: MutableMapping, key: bytes, deadline: tuple) -> None:
        self._storage = storage
        self._key = key
        self._deadline = deadline

    def release(self) -> None:
        if self._storage.get(self._key) == self._deadline:
            del self._storage[self._key]

    def __enter__(self) -> "_LockGuard":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class StorageLock:
    """A lock in off-chain storage that expires after both a block and a time deadline."""

    def __init__(
        self,
        storage: MutableMapping,
        key: bytes,
        block_number: int,
        block_expiration: int,
        time_expiration: float,
    ) -> None:
        self.storage = storage
        self.key = key
        self.block_number = block_number
        self.block_expiration = block_expiration
        self.time_expiration = time_expiration

    def try_lock(self) -> _LockGuard | None:
        """Take the lock and return its guard, or ``None`` if it is still held."""
        now_ms = time.monotonic() * 1000
        held = self.storage.get(self.key)
        if held is not None:
            deadline_block, deadline_ms = held
            if not (self.block_number > deadline_block and now_ms > deadline_ms):
                return None
        deadline = (
            self.block_number + self.block_expiration,
            now_ms + self.time_expiration,
        )
        self.storage[self.key] = deadline
        return _LockGuard(self.storage, self.key, deadline)


# --- the pallet -------------------------------------------------------------


class OcwDemo:
    def __init__(
        self,
        system: System,
        signer: Any = None,
        transaction_pool: Callable[[tuple, Hashable | None], Any] | None = None,
        fetch: Callable[[str, dict, float], tuple[int, bytes]] | None = None,
    ) -> None:
        self.system = system
        self.signer = signer
        self.transaction_pool = transaction_pool
        self.fetch = fetch
        self.local_storage: dict[bytes, Any] = {}
        self._numbers: deque[int] = deque(maxlen=NUM_VEC_LEN)

    @property
    def numbers(self) -> list[int]:
        """Recently submitted numbers, oldest first, at most NUM_VEC_LEN."""
        return list(self._numbers)

    # on-chain calls

    def _accept_number(self, label: bytes, number: int) -> None:
        if not 0 <= number <= _U64_MAX:
            raise ValueError("number must be an unsigned 64-bit integer")
        self._numbers.append(number)
        logger.info("Number vector: %r", list(self._numbers))
        key = self.derived_key(self.system.block_number)
        self.local_storage[key] = IndexingData(label, number).encode()

    def submit_number_signed(self, origin: Origin, number: int) -> None:
        who = ensure_signed(origin)
        logger.info("submit_number_signed: (%s, %r)", number, who)
        self._accept_number(b"submit_number_signed", number)
        self.system.deposit_event(NewNumber(who, number))

    def submit_number_unsigned(self, origin: Origin, number: int) -> None:
        ensure_none(origin)
        logger.info("submit_number_unsigned: %s", number)
        self._accept_number(b"submit_number_unsigned", number)
        self.system.deposit_event(NewNumber(None, number))

    def submit_number_unsigned_with_signed_payload(
        self, origin: Origin, payload: Payload, signature: Any
    ) -> None:
        """Accept the payload's number; its signature was checked in validation."""
        ensure_none(origin)
        logger.info(
            "submit_number_unsigned_with_signed_payload: (%s, %r)",
            payload.number,
            payload.public,
        )
        self._accept_number(b"submit_number_unsigned_with_signed_payload", payload.number)
        self.system.deposit_event(NewNumber(None, payload.number))

    def derived_key(self, block_number: int) -> bytes:
        """The off-chain indexing key for calls made in ``block_number``."""
        return ONCHAIN_TX_KEY + b"/" + block_number.to_bytes(4, "little")

    # off-chain worker

    def offchain_worker(self, block_number: int) -> None:
        """Run the job chosen by the block number; failures are logged."""
        logger.info("Entering off-chain worker")
        jobs = {
            1: self._offchain_signed_tx,
            2: self._offchain_unsigned_tx,
            3: self._offchain_unsigned_tx_signed_payload,
        }
        number = block_number if 0 <= block_number <= _U64_MAX else 0
        job = jobs.get(number % _TRANSACTION_TYPES)
        try:
            if job is None:
                self.fetch_github_info()
            else:
                job(number)
        except OffchainError as exc:
            logger.error("offchain_worker error: %r", exc)

        raw = self.local_storage.get(self.derived_key(block_number))
        try:
            data = IndexingData.decode(raw) if isinstance(raw, bytes) else None
        except ValueError:
            data = None
        if data is None:
            logger.info("no off-chain indexing data retrieved.")
        else:
            try:
                label = data.label.decode()
            except UnicodeDecodeError:
                label = "error"
            logger.info("off-chain indexing data: %r, %r", label, data.number)

    def _submit(self, call: tuple, account: Hashable | None) -> None:
        if self.transaction_pool is None:
            raise RuntimeError("no transaction pool")
        self.transaction_pool(call, account)

    def _offchain_signed_tx(self, number: int) -> None:
        if self.signer is None:
            logger.error("No local account available")
            raise NoLocalAcctForSigning("no local account available")
        try:
            self._submit(("submit_number_signed", number), self.signer.account)
        except Exception as exc:
            logger.error("failure: offchain_signed_tx: tx sent: %r", self.signer.account)
            raise OffchainSignedTxError("signed transaction failed") from exc

    def _offchain_unsigned_tx(self, number: int) -> None:
        try:
            self._submit(("submit_number_unsigned", number), None)
        except Exception as exc:
            logger.error("Failed in offchain_unsigned_tx")
            raise OffchainUnsignedTxError("unsigned transaction failed") from exc

    def _offchain_unsigned_tx_signed_payload(self, number: int) -> None:
        if self.signer is None:
            logger.error("No local account available")
            raise NoLocalAcctForSigning("no local account available")
        try:
            payload = Payload(number, self.signer.public)
            signature = self.signer.sign(_payload_message(payload))
            call = ("submit_number_unsigned_with_signed_payload", payload, signature)
            self._submit(call, None)
        except Exception as exc:
            logger.error("Failed in offchain_unsigned_tx_signed_payload")
            raise OffchainUnsignedTxSignedPayloadError(
                "unsigned transaction with signed payload failed"
            ) from exc

    def validate_unsigned(self, call: tuple) -> ValidTransaction:
        """Accept the two unsigned calls, checking the payload signature; else raise."""
        if not isinstance(call, tuple) or not call:
            raise InvalidTransaction(InvalidTransaction.CALL)
        name, *args = call
        if name == "submit_number_unsigned" and len(args) == 1:
            return _valid_tx(b"submit_number_unsigned")
        if name == "submit_number_unsigned_with_signed_payload" and len(args) == 2:
            payload, signature = args
            if not self._verify(payload, signature):
                raise InvalidTransaction(InvalidTransaction.BAD_PROOF)
            return _valid_tx(b"submit_number_unsigned_with_signed_payload")
        raise InvalidTransaction(InvalidTransaction.CALL)

    def _verify(self, payload: Any, signature: Any) -> bool:
        if self.signer is None or not isinstance(payload, Payload):
            return False
        try:
            return bool(
                self.signer.verify(_payload_message(payload), signature, payload.public)
            )
        except Exception:
            return False

    def fetch_github_info(self) -> GithubInfo | None:
        """Return cached info, or fetch and cache it under a lock.

        Returns ``None`` when another run holds the lock.
        """
        cached = self.local_storage.get(GH_INFO_KEY)
        if isinstance(cached, bytes):
            try:
                info = _decode_github_info(cached)
            except ValueError:
                info = None
            if info is not None:
                logger.info("cached gh-info: %s", info)
                return info

        lock = StorageLock(
            self.local_storage,
            LOCK_KEY,
            self.system.block_number,
            LOCK_BLOCK_EXPIRATION,
            LOCK_TIMEOUT_EXPIRATION,
        )
        guard = lock.try_lock()
        if guard is None:
            return None
        with guard:
            info = self.fetch_n_parse()
            self.local_storage[GH_INFO_KEY] = _encode_github_info(info)
        return info

    def fetch_n_parse(self) -> GithubInfo:
        """Fetch the remote JSON and parse it, raising HttpFetchingError on failure."""
        body = self._fetch_from_remote()
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            raise HttpFetchingError("response is not valid UTF-8") from None
        logger.info("%s", text)
        try:
            return GithubInfo.from_json(text)
        except ValueError as exc:
            raise HttpFetchingError("response could not be parsed") from exc

    def _fetch_from_remote(self) -> bytes:
        logger.info("sending request to: %s", HTTP_REMOTE_REQUEST)
        if self.fetch is None:
            raise HttpFetchingError("no HTTP client configured")
        try:
            status, body = self.fetch(
                HTTP_REMOTE_REQUEST,
                {"User-Agent": HTTP_HEADER_USER_AGENT},
                FETCH_TIMEOUT_PERIOD / 1000,
            )
        except Exception as exc:
            logger.error("fetch_from_remote error: %r", exc)
            raise HttpFetchingError("request failed") from exc
        if status != 200:
            logger.error("Unexpected http request status code: %s", status)
            raise HttpFetchingError(f"unexpected status code {status}")
        return bytes(body)