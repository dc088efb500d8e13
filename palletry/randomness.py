"""Insecure randomness drawn from recent parent block hashes."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from palletry.runtime import Origin, System, ensure_signed

RANDOM_MATERIAL_LEN = 81
_HASH_LEN = 32
_U32_MASK = 0xFFFF_FFFF
ZERO_HASH = bytes(_HASH_LEN)


def _hash(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=_HASH_LEN).digest()


class CollectiveFlip:
    """A randomness source mixing the hashes of the last blocks.

    Until any material has been collected every value is the zero hash.
    """

    def __init__(self, system: System) -> None:
        self.system = system
        self._material: list[bytes] = []

    def _index(self) -> int:
        return (self.system.block_number - 1) % RANDOM_MATERIAL_LEN

    def on_initialize(self, parent_hash: bytes) -> None:
        """Record the parent hash of the block being initialised."""
        if len(parent_hash) != _HASH_LEN:
            raise ValueError(f"parent hash must be {_HASH_LEN} bytes")
        if len(self._material) < RANDOM_MATERIAL_LEN:
            self._material.append(bytes(parent_hash))
        else:
            self._material[self._index()] = bytes(parent_hash)

    def random_seed(self) -> bytes:
        return self.random(b"")

    def random(self, subject: bytes) -> bytes:
        """A 32-byte value derived from ``subject`` and the collected hashes."""
        if not self._material:
            return ZERO_HASH
        start = self._index() % len(self._material)
        ordered = self._material[start:] + self._material[:start]
        mixed = 0
        for position, parent in enumerate(ordered):
            digest = _hash(bytes([position & 0xFF]) + subject + parent)
            mixed ^= int.from_bytes(digest, "big")
        return mixed.to_bytes(_HASH_LEN, "big")


@dataclass(frozen=True)
class RandomnessConsumed:
    """The raw seed and the value drawn with the nonce as subject."""

    seed: bytes
    result: bytes


class RandomnessPallet:
    def __init__(self, system: System, source: CollectiveFlip) -> None:
        self.system = system
        self.source = source
        self.nonce = 0

    def _encode_and_update_nonce(self) -> bytes:
        nonce = self.nonce
        self.nonce = (nonce + 1) & _U32_MASK
        return nonce.to_bytes(4, "little")

    def consume_randomness(self, origin: Origin) -> None:
        """Draw a seed and a nonce-keyed random value and emit them."""
        ensure_signed(origin)
        subject = self._encode_and_update_nonce()
        seed = self.source.random_seed()
        result = self.source.random(subject)
        self.system.deposit_event(RandomnessConsumed(seed, result))