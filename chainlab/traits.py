"""Core value types and storage interfaces shared by the chain simulator."""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any

ADDRESS_LEN = 20


@dataclass(frozen=True, order=True)
class Address:
    """A 20-byte account address."""

    raw: bytes = bytes(ADDRESS_LEN)

    def __post_init__(self) -> None:
        raw = bytes(self.raw)
        if len(raw) != ADDRESS_LEN:
            raise ValueError(f"address must be {ADDRESS_LEN} bytes, got {len(raw)}")
        object.__setattr__(self, "raw", raw)

    @classmethod
    def from_hex(cls, text: str) -> Address:
        """Parses an address from its 40-character hex form."""
        if len(text) != 2 * ADDRESS_LEN:
            raise ValueError(f"invalid address: {text!r}")
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError(f"invalid address: {text!r}") from exc
        return cls(raw)

    def hex(self) -> str:
        return self.raw.hex()

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.hex()


@dataclass(frozen=True)
class AccountMeta:
    """Publicly visible account metadata."""

    balance: int
    expiry: timedelta | None = None


@dataclass(frozen=True)
class Event:
    """A broadcast message emitted by a contract."""

    emitter: Address
    topics: tuple[bytes, ...]
    data: bytes


class TransactionOutcome(Enum):
    SUCCESS = 0
    INSUFFICIENT_FUNDS = 1
    INSUFFICIENT_GAS = 2
    INVALID_INPUT = 3
    INVALID_CALLEE = 4
    ABORTED = 5
    FATAL = 6

    def reverted(self) -> bool:
        return self is not TransactionOutcome.SUCCESS


class KVStore(ABC):
    """Read access to an account's key-value storage."""

    @abstractmethod
    def contains(self, key: bytes) -> bool:
        """Returns whether `key` is present."""

    @abstractmethod
    def get(self, key: bytes) -> bytes | None:
        """Returns the value stored under `key`, if any."""


class KVStoreMut(KVStore):
    """Read-write access to an account's key-value storage."""

    @abstractmethod
    def set(self, key: bytes, value: bytes) -> None:
        """Stores `value` under `key`, overwriting existing data."""

    @abstractmethod
    def remove(self, key: bytes) -> None:
        """Removes the value stored under `key`."""


@dataclass(frozen=True)
class Context:
    """The calling context of a service method."""

    sender: Address = field(default_factory=Address)
    gas: int | None = None
    events: list[Any] = field(default_factory=list, compare=False, repr=False)

    def with_sender(self, sender: Address) -> Context:
        return dataclasses.replace(self, sender=sender)

    def with_gas(self, gas: int) -> Context:
        return dataclasses.replace(self, gas=gas)

    def emit(self, event: Any) -> None:
        """Records an emitted event; contexts derived from each other share the log."""
        self.events.append(event)