"""An in-memory blockchain with Ethereum-like semantics."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, Optional

from chainlab.traits import AccountMeta, Address, Event, KVStoreMut, TransactionOutcome

TOPIC_LEN = 32

MainFn = Callable[["PendingTransaction"], int]


@dataclass
class Account(KVStoreMut):
    """An account; `main`, when set, is called with the pending transaction
    and returns nonzero to revert it."""

    balance: int = 0
    code: bytes = b""
    storage: dict[bytes, bytes] = field(default_factory=dict)
    expiry: Optional[timedelta] = None
    main: Optional[MainFn] = None

    def contains(self, key: bytes) -> bool:
        return bytes(key) in self.storage

    def get(self, key: bytes) -> bytes | None:
        return self.storage.get(bytes(key))

    def set(self, key: bytes, value: bytes) -> None:
        self.storage[bytes(key)] = bytes(value)

    def remove(self, key: bytes) -> None:
        self.storage.pop(bytes(key), None)

    def _copy(self) -> Account:
        return dataclasses.replace(self, storage=dict(self.storage))


State = Dict[Address, Account]


def _clone_state(state: State) -> State:
    return {addr: acct._copy() for addr, acct in state.items()}


def _meta(state: State, addr: Address) -> AccountMeta | None:
    acct = state.get(addr)
    if acct is None:
        return None
    return AccountMeta(balance=acct.balance, expiry=acct.expiry)


def _code(state: State, addr: Address) -> bytes | None:
    acct = state.get(addr)
    return None if acct is None else acct.code


@dataclass
class Receipt:
    outcome: TransactionOutcome
    caller: Address
    callee: Address
    value: int
    gas_used: int
    events: list[Event] = field(default_factory=list)
    output: bytes = b""

    def reverted(self) -> bool:
        return self.outcome.reverted()

    def _copy(self) -> Receipt:
        return dataclasses.replace(self, events=list(self.events))


@dataclass
class PendingTransaction:
    """The data and functionality available to a running contract."""

    caller: Address
    callee: Address
    value: int
    accounts: State
    input: bytes
    gas_left: int
    base_gas: int
    outcome: TransactionOutcome = TransactionOutcome.SUCCESS
    output: bytes = b""
    events: list[Event] = field(default_factory=list)

    @property
    def address(self) -> Address:
        """The address of the current contract instance."""
        return self.callee

    @property
    def sender(self) -> Address:
        return self.caller

    def _run(self, main: MainFn | None) -> None:
        if main is not None and main(self) != 0:
            self.outcome = TransactionOutcome.ABORTED

    def transact(self, callee: Address, value: int, input: bytes) -> Receipt:
        """Runs a nested transaction from the current account."""
        caller = self.callee
        receipt = Receipt(
            outcome=TransactionOutcome.SUCCESS,
            caller=caller,
            callee=callee,
            value=value,
            gas_used=0,
        )

        if self.gas_left < self.base_gas:
            receipt.outcome = TransactionOutcome.INSUFFICIENT_GAS
            return receipt
        if callee not in self.accounts:
            receipt.outcome = TransactionOutcome.INVALID_CALLEE
            return receipt

        sub_state = _clone_state(self.accounts)
        caller_acct = sub_state[caller]
        if caller_acct.balance < value:
            receipt.outcome = TransactionOutcome.INSUFFICIENT_FUNDS
            return receipt
        caller_acct.balance -= value
        sub_state[callee].balance += value

        sub = PendingTransaction(
            caller=caller,
            callee=callee,
            value=value,
            accounts=sub_state,
            input=bytes(input),
            gas_left=self.gas_left - self.base_gas,
            base_gas=self.base_gas,
        )
        sub._run(self.accounts[callee].main)

        receipt.outcome = sub.outcome
        receipt.output = sub.output
        if not receipt.reverted():
            self.accounts = sub.accounts
            receipt.events.extend(sub.events)
            self.events.extend(sub.events)
        return receipt

    def ret(self, data: bytes) -> None:
        """Returns data to the calling transaction."""
        if self.output:
            raise RuntimeError("transaction output has already been set")
        self.output = bytes(data)

    def err(self, data: bytes) -> None:
        """Returns error data and marks the transaction as aborted."""
        if self.output:
            raise RuntimeError("transaction output has already been set")
        self.output = bytes(data)
        self.outcome = TransactionOutcome.ABORTED

    def emit(self, topics: list[bytes], data: bytes) -> None:
        truncated = []
        for topic in topics:
            if len(topic) < TOPIC_LEN:
                raise ValueError(f"topic must be at least {TOPIC_LEN} bytes")
            truncated.append(bytes(topic[:TOPIC_LEN]))
        self.events.append(Event(self.callee, tuple(truncated), bytes(data)))

    def state(self) -> Account:
        """The storage of the current account."""
        return self.accounts[self.callee]

    def state_mut(self) -> Account:
        return self.accounts[self.callee]

    def code_at(self, addr: Address) -> bytes | None:
        return _code(self.accounts, addr)

    def account_meta_at(self, addr: Address) -> AccountMeta | None:
        return _meta(self.accounts, addr)


@dataclass
class Block:
    height: int
    state: State
    base_gas: int
    completed_transactions: list[Receipt] = field(default_factory=list)

    def transact(
        self,
        caller: Address,
        callee: Address,
        payer: Address,
        value: int,
        input: bytes,
        gas: int,
        gas_price: int,
    ) -> Receipt:
        """Executes a top-level transaction; the payer is charged gas * gas_price
        even when the transaction reverts."""
        receipt = Receipt(
            outcome=TransactionOutcome.SUCCESS,
            caller=caller,
            callee=callee,
            value=value,
            gas_used=gas,
        )

        def finish(outcome: TransactionOutcome) -> Receipt:
            receipt.outcome = outcome
            self.completed_transactions.append(receipt._copy())
            return receipt

        if callee not in self.state:
            return finish(TransactionOutcome.INVALID_CALLEE)
        if gas < self.base_gas:
            return finish(TransactionOutcome.INSUFFICIENT_GAS)

        payer_acct = self.state.get(payer)
        if payer_acct is None:
            return finish(TransactionOutcome.INVALID_CALLEE)
        gas_cost = gas * gas_price
        if payer_acct.balance < gas_cost:
            payer_acct.balance = 0
            return finish(TransactionOutcome.INSUFFICIENT_FUNDS)
        payer_acct.balance -= gas_cost

        ptx_state = _clone_state(self.state)
        caller_acct = ptx_state.get(caller)
        if caller_acct is None:
            return finish(TransactionOutcome.INVALID_CALLEE)
        if caller_acct.balance < value:
            return finish(TransactionOutcome.INSUFFICIENT_FUNDS)
        caller_acct.balance -= value
        ptx_state[callee].balance += value

        ptx = PendingTransaction(
            caller=caller,
            callee=callee,
            value=value,
            accounts=ptx_state,
            input=bytes(input),
            gas_left=gas - self.base_gas,
            base_gas=self.base_gas,
        )
        ptx._run(self.state[callee].main)

        receipt.outcome = ptx.outcome
        receipt.output = ptx.output
        if receipt.reverted():
            receipt.events.clear()
        else:
            self.state = ptx.accounts
            receipt.events.extend(ptx.events)
        self.completed_transactions.append(receipt._copy())
        return receipt

    def code_at(self, addr: Address) -> bytes | None:
        return _code(self.state, addr)

    def account_meta_at(self, addr: Address) -> AccountMeta | None:
        return _meta(self.state, addr)

    def state_at(self, addr: Address) -> Account | None:
        return self.state.get(addr)

    def events(self) -> list[Event]:
        return [event for receipt in self.completed_transactions for event in receipt.events]

    def receipts(self) -> list[Receipt]:
        return list(self.completed_transactions)


class Memchain:
    """A named chain of blocks sharing a base gas cost."""

    def __init__(self, name: str, genesis_state: State, base_gas: int) -> None:
        self.name = name
        self.base_gas = base_gas
        self.blocks: list[Block] = []
        self._push_block(_clone_state(genesis_state))

    def _push_block(self, state: State) -> Block:
        block = Block(height=len(self.blocks), state=state, base_gas=self.base_gas)
        self.blocks.append(block)
        return block

    def create_block(self) -> Block:
        """Appends a block that starts from the state of the current last block."""
        return self._push_block(_clone_state(self.blocks[-1].state))

    def block(self, height: int) -> Block | None:
        if 0 <= height < len(self.blocks):
            return self.blocks[height]
        return None

    def last_block(self) -> Block:
        return self.blocks[-1]