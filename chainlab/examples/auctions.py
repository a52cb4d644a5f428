"""A sealed-bid auction market for unique artifacts.

The winning bidder pays the second-highest bid, or the reserve when
there is only one bid.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from enum import Enum
from typing import Any

from chainlab.traits import Address, Context

ItemId = int
UserId = Address


class AuctionError(Exception):
    """An auction operation was refused; `details` holds the values named in the message."""

    class Kind(Enum):
        UNKNOWN = "Unknown error occured."
        BLACKLISTED_USER = "The marketplace is not open to {user_id}."
        INVALID_ITEM = "Item {item_id} does not exist."
        ITEM_IN_LIVE_AUCTION = "The item {item_id} is already in a live auction."
        INVALID_OWNER = "You don't own item {item_id} and hence cannot sell it."
        ITEM_NOT_ACTIVE = "There is no active auction for item {item_id}."
        RESERVE_NOT_MET = "The bid has to be higher than the reserve of {reserve}."
        OUTBID = "The bid is lower than the current maximum."
        NON_MONOTONIC_BID = "A new bid has to be greater than {value}."
        INVALID_CLOSE_REQUEST = "The seller is the only one who can close an auction."
        INSUFFICIENT_BIDS = "There are no bids on item {item_id}. Closing auction."
        SELLER_BIDDER_INDISTINCT = "The seller cannot also be a bidder for an item."

    def __init__(self, kind: AuctionError.Kind, **details: Any) -> None:
        super().__init__(kind.value.format(**details))
        self.kind = kind
        self.details = details

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuctionError):
            return NotImplemented
        return self.kind is other.kind and self.details == other.details

    def __hash__(self) -> int:
        return hash((self.kind, tuple(sorted(self.details.items()))))


@dataclass(eq=False)
class Bid:
    """A bidder's latest bid; bids are equal by bidder and ordered by value."""

    bidder: UserId = field(default_factory=Address)
    value: int = 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bid):
            return NotImplemented
        return self.bidder == other.bidder

    def __hash__(self) -> int:
        return hash(self.bidder)

    def __lt__(self, other: Bid) -> bool:
        return self.value < other.value

    def __le__(self, other: Bid) -> bool:
        return self.value <= other.value

    def __gt__(self, other: Bid) -> bool:
        return self.value > other.value

    def __ge__(self, other: Bid) -> bool:
        return self.value >= other.value


@dataclass
class Auction:
    """An auction of one item, live or concluded."""

    item_id: ItemId = 0
    bids: dict[UserId, Bid] = field(default_factory=dict)
    reserve: int = 0
    max_bid: int = 0
    realized: int = 0
    seller: UserId = field(default_factory=Address)
    buyer: UserId = field(default_factory=Address)


@dataclass(frozen=True)
class ArtifactBase:
    """The public part of an artifact, emitted when it enters the market."""

    item_id: ItemId = 0
    description: str = ""


@dataclass
class Artifact:
    """An artifact with its owner, auction history and current valuation."""

    base: ArtifactBase = field(default_factory=ArtifactBase)
    owner: UserId = field(default_factory=Address)
    provenance: list[Auction] = field(default_factory=list)
    value: int = 0
    transaction_time: str = ""


@dataclass(frozen=True)
class Summary:
    """Emitted when an auction concludes."""

    owner: UserId
    realized: int
    item_id: ItemId
    transaction_time: str


def _now_rfc2822() -> str:
    return format_datetime(datetime.now(timezone.utc))


class AuctionMarket:
    """A market where anyone not blacklisted may sell items and bid on others' items."""

    def __init__(self, ctx: Context) -> None:
        self._item_counter: ItemId = 0
        self._admins: set[UserId] = {ctx.sender}
        self._blacklist: set[UserId] = set()
        self._market_size = 0
        self._artifacts: dict[ItemId, Artifact] = {}
        self._auctions: dict[ItemId, Auction] = {}

    def _require_not_blacklisted(self, ctx: Context) -> None:
        if ctx.sender in self._blacklist:
            raise AuctionError(AuctionError.Kind.BLACKLISTED_USER, user_id=ctx.sender)

    def add_item(self, ctx: Context, value: int, description: str) -> Artifact:
        """Adds an item owned by the sender and returns it."""
        self._require_not_blacklisted(ctx)
        artifact = Artifact(
            base=ArtifactBase(item_id=self._item_counter, description=description),
            owner=ctx.sender,
            value=value,
            transaction_time=_now_rfc2822(),
        )
        self._artifacts[self._item_counter] = artifact
        self._market_size += value
        ctx.emit(artifact.base)
        self._item_counter += 1
        return copy.deepcopy(artifact)

    def get_artifact(self, ctx: Context, item_id: ItemId) -> Artifact:
        """Returns an artifact that is not currently being auctioned."""
        artifact = self._artifacts.get(item_id)
        if artifact is None:
            raise AuctionError(AuctionError.Kind.INVALID_ITEM, item_id=item_id)
        if item_id in self._auctions:
            raise AuctionError(AuctionError.Kind.ITEM_IN_LIVE_AUCTION, item_id=item_id)
        return copy.deepcopy(artifact)

    def get_market_size(self, ctx: Context) -> int:
        """Returns the summed valuation of every artifact in the market."""
        return self._market_size

    def start_auction(self, ctx: Context, item_id: ItemId, reserve: int) -> Auction:
        """Opens an auction of an item owned by the sender."""
        artifact = self._artifacts.get(item_id)
        if artifact is None:
            raise AuctionError(AuctionError.Kind.INVALID_ITEM, item_id=item_id)
        if artifact.owner != ctx.sender:
            raise AuctionError(AuctionError.Kind.INVALID_OWNER, item_id=item_id)
        if item_id in self._auctions:
            raise AuctionError(AuctionError.Kind.ITEM_IN_LIVE_AUCTION, item_id=item_id)
        auction = Auction(item_id=item_id, seller=ctx.sender, reserve=reserve)
        self._auctions[item_id] = auction
        ctx.emit(artifact.base)
        return copy.deepcopy(auction)

    def place_bid(self, ctx: Context, item_id: ItemId, value: int) -> None:
        """Places or raises the sender's bid on a live auction."""
        auction = self._auctions.get(item_id)
        if auction is None:
            raise AuctionError(AuctionError.Kind.ITEM_NOT_ACTIVE, item_id=item_id)
        if auction.seller == ctx.sender:
            raise AuctionError(AuctionError.Kind.SELLER_BIDDER_INDISTINCT)
        self._require_not_blacklisted(ctx)
        if value < auction.reserve:
            raise AuctionError(AuctionError.Kind.RESERVE_NOT_MET, reserve=auction.reserve)
        if value < auction.max_bid:
            raise AuctionError(AuctionError.Kind.OUTBID)
        bid = auction.bids.setdefault(ctx.sender, Bid(bidder=ctx.sender, value=value))
        if bid.value > value or value < auction.max_bid:
            raise AuctionError(
                AuctionError.Kind.NON_MONOTONIC_BID, value=max(bid.value, auction.max_bid)
            )
        bid.value = value
        auction.max_bid = value

    def close_auction(self, ctx: Context, item_id: ItemId) -> Auction:
        """Ends a live auction and settles it at the second-highest bid.

        The auction is withdrawn from the market even when closing is refused.
        """
        auction = self._auctions.pop(item_id, None)
        if auction is None:
            raise AuctionError(AuctionError.Kind.ITEM_NOT_ACTIVE, item_id=item_id)
        if auction.seller != ctx.sender:
            raise AuctionError(AuctionError.Kind.INVALID_CLOSE_REQUEST)
        if not auction.bids:
            raise AuctionError(AuctionError.Kind.INSUFFICIENT_BIDS, item_id=item_id)

        artifact = self._artifacts[item_id]
        ranked = sorted(auction.bids.values(), key=lambda bid: bid.value, reverse=True)
        auction.buyer = ranked[0].bidder
        auction.realized = ranked[1].value if len(ranked) > 1 else auction.reserve

        self._market_size = self._market_size - artifact.value + auction.realized
        artifact.provenance.append(copy.deepcopy(auction))
        artifact.value = auction.realized
        transaction_time = _now_rfc2822()
        artifact.transaction_time = transaction_time

        ctx.emit(
            Summary(
                owner=auction.buyer,
                realized=auction.realized,
                item_id=auction.item_id,
                transaction_time=transaction_time,
            )
        )
        return auction