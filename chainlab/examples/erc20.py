"""An ERC20-style fungible token service."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from chainlab.traits import Address, Context


class Erc20Error(Exception):
    """A token operation was refused; `details` holds the values named in the message."""

    class Kind(Enum):
        UNKNOWN = "Unknown error occured."
        ADMIN_PRIVILEGES_REQUIRED = "Only existing admins can perform this operation."
        INSUFFICIENT_FUNDS = "Insuffient funds for transfer from {address}."
        NO_ALLOWANCE_GIVEN = "Address {from_} has no allowance from address {to}."
        REQUEST_EXCEEDS_ALLOWANCE = "Transfer request {amount} exceeds allowance {allowance}."

    def __init__(self, kind: Erc20Error.Kind, **details: Any) -> None:
        super().__init__(kind.value.format(**details))
        self.kind = kind
        self.details = details

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Erc20Error):
            return NotImplemented
        return self.kind is other.kind and self.details == other.details

    def __hash__(self) -> int:
        return hash((self.kind, tuple(sorted(self.details.items()))))


@dataclass(frozen=True)
class Transfer:
    """Emitted when tokens move between accounts."""

    from_: Address = field(default_factory=Address)
    to: Address = field(default_factory=Address)
    amount: int = 0


@dataclass(frozen=True)
class Approval:
    """Emitted when an account grants an allowance."""

    sender: Address = field(default_factory=Address)
    spender: Address = field(default_factory=Address)
    amount: int = 0


def _do_transfer(
    ctx: Context, accounts: dict[Address, int], from_: Address, to: Address, amount: int
) -> bool:
    from_balance = accounts.get(from_, 0)
    to_balance = accounts.get(to, 0)
    if from_balance < amount:
        return False
    accounts[from_] = from_balance - amount
    accounts[to] = to_balance + amount
    ctx.emit(Transfer(from_=from_, to=to, amount=amount))
    return True


class ERC20Token:
    """A token whose whole initial supply belongs to its creator."""

    def __init__(self, ctx: Context, total_supply: int) -> None:
        owner = ctx.sender
        self._total_supply = total_supply
        self.owner = owner
        self._admins: set[Address] = {owner}
        self._accounts: dict[Address, int] = {owner: total_supply}
        self._allowed: dict[Address, dict[Address, int]] = {}

    def _require_admin(self, ctx: Context) -> None:
        if ctx.sender not in self._admins:
            raise Erc20Error(Erc20Error.Kind.ADMIN_PRIVILEGES_REQUIRED)

    def balance_of(self, ctx: Context) -> int:
        """Returns the sender's balance."""
        return self._accounts.get(ctx.sender, 0)

    def total_supply(self, ctx: Context) -> int:
        return self._total_supply

    def add_admin(self, ctx: Context, admin: Address) -> None:
        self._require_admin(ctx)
        self._admins.add(admin)

    def transfer(self, ctx: Context, to: Address, amount: int) -> Transfer:
        """Moves `amount` from the sender to `to`; a self-transfer or zero amount does nothing."""
        from_ = ctx.sender
        if from_ == to or amount == 0:
            return Transfer()
        if _do_transfer(ctx, self._accounts, from_, to, amount):
            return Transfer(from_=from_, to=to, amount=amount)
        raise Erc20Error(Erc20Error.Kind.INSUFFICIENT_FUNDS, address=from_)

    def approve(self, ctx: Context, spender: Address, amount: int) -> Approval:
        """Sets the amount `spender` may take from the sender."""
        self._allowed.setdefault(ctx.sender, {})[spender] = amount
        approval = Approval(sender=ctx.sender, spender=spender, amount=amount)
        ctx.emit(approval)
        return approval

    def allowance(self, ctx: Context, spender: Address) -> int:
        """Returns what `spender` may still take from the sender."""
        return self._allowed.get(ctx.sender, {}).get(spender, 0)

    def transfer_from(
        self, ctx: Context, from_: Address, spender: Address, amount: int
    ) -> Transfer:
        """Moves `amount` from `from_` to `spender` within the allowance `from_` granted."""
        allowances = self._allowed.get(from_)
        if allowances is None or spender not in allowances:
            raise Erc20Error(Erc20Error.Kind.NO_ALLOWANCE_GIVEN, from_=from_, to=spender)
        allowance = allowances[spender]
        if allowance < amount:
            raise Erc20Error(
                Erc20Error.Kind.REQUEST_EXCEEDS_ALLOWANCE, amount=amount, allowance=allowance
            )
        if _do_transfer(ctx, self._accounts, from_, spender, amount):
            allowances[spender] = allowance - amount
            return Transfer(from_=from_, to=spender, amount=amount)
        raise Erc20Error(Erc20Error.Kind.INSUFFICIENT_FUNDS, address=from_)

    def mint(self, ctx: Context, amount: int) -> None:
        """Increases the total supply; admins only."""
        self._require_admin(ctx)
        self._total_supply += amount

    def burn(self, ctx: Context, from_: Address, amount: int) -> None:
        """Removes up to `amount` tokens from `from_`; admins only."""
        self._require_admin(ctx)
        balance = self._accounts.get(from_, 0)
        self._accounts[from_] = max(0, balance - amount)