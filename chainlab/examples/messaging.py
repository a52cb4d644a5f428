"""A message board service with public posts, comments and direct messages."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum

from chainlab.traits import Address, Context

UserId = Address
PostId = int


class MessageBoardError(Exception):
    """A message board operation was refused."""

    class Kind(Enum):
        INVALID_USER_ID = "Invalid user id."
        INVALID_POST_ID = "Invalid post id."
        PERMISSION_DENIED = "Permission denied."
        MESSAGE_TOO_LONG = "Message too long."

    def __init__(self, kind: MessageBoardError.Kind) -> None:
        super().__init__(kind.value)
        self.kind = kind

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MessageBoardError):
            return NotImplemented
        return self.kind is other.kind

    def __hash__(self) -> int:
        return hash(self.kind)


@dataclass(frozen=True)
class Message:
    """A comment or direct message and who sent it."""

    from_: UserId
    text: str


@dataclass
class Post:
    """A public post and the comments made on it."""

    author: UserId
    text: str
    comments: list[Message] = field(default_factory=list)

    def _copy(self) -> Post:
        return dataclasses.replace(self, comments=list(self.comments))


@dataclass(frozen=True)
class MessagePosted:
    """Emitted when a post or a direct message is made."""

    author: UserId
    recipient: UserId | None = None


@dataclass
class _Account:
    inbox: list[Message] = field(default_factory=list)


class MessageBoard:
    """A board whose creator is its admin; admins decide who may take part."""

    def __init__(self, ctx: Context, bcast_char_limit: int | None) -> None:
        self._admins: set[UserId] = {ctx.sender}
        self._bcast_char_limit = bcast_char_limit
        self._posts: list[Post] = []
        self._accounts: dict[UserId, _Account] = {ctx.sender: _Account()}

    def _require_admin(self, ctx: Context) -> None:
        if ctx.sender not in self._admins:
            raise MessageBoardError(MessageBoardError.Kind.PERMISSION_DENIED)

    def _require_member(self, ctx: Context) -> None:
        if ctx.sender not in self._accounts:
            raise MessageBoardError(MessageBoardError.Kind.PERMISSION_DENIED)

    def add_user(self, ctx: Context, user_id: UserId) -> None:
        """Registers a user; admins only."""
        self._require_admin(ctx)
        self._accounts.setdefault(user_id, _Account())

    def remove_user(self, ctx: Context, user_id: UserId) -> None:
        """Unregisters a user; admins only."""
        self._require_admin(ctx)
        self._accounts.pop(user_id, None)

    def post(self, ctx: Context, text: str) -> PostId:
        """Makes a post as a registered user and returns its id."""
        self._require_member(ctx)
        limit = self._bcast_char_limit
        if limit is not None and len(text.encode("utf-8")) > limit:
            raise MessageBoardError(MessageBoardError.Kind.MESSAGE_TOO_LONG)
        self._posts.append(Post(author=ctx.sender, text=text))
        ctx.emit(MessagePosted(author=ctx.sender, recipient=None))
        return len(self._posts) - 1

    def posts(self, ctx: Context, range_: tuple[PostId | None, PostId | None]) -> list[Post]:
        """Returns copies of the posts with ids in [start, stop)."""
        self._require_member(ctx)
        start, stop = range_
        start = start or 0
        end = len(self._posts) if stop is None else min(stop, len(self._posts))
        return [post._copy() for post in self._posts[start:end]]

    def comment(self, ctx: Context, post_id: PostId, text: str) -> None:
        """Adds a comment to an existing post."""
        self._require_member(ctx)
        if not 0 <= post_id < len(self._posts):
            raise MessageBoardError(MessageBoardError.Kind.INVALID_POST_ID)
        self._posts[post_id].comments.append(Message(from_=ctx.sender, text=text))

    def send_dm(self, ctx: Context, recipient: UserId, text: str) -> None:
        """Delivers a message to a registered user's inbox."""
        self._require_member(ctx)
        account = self._accounts.get(recipient)
        if account is None:
            raise MessageBoardError(MessageBoardError.Kind.INVALID_USER_ID)
        account.inbox.append(Message(from_=ctx.sender, text=text))
        ctx.emit(MessagePosted(author=ctx.sender, recipient=None))

    def fetch_inbox(self, ctx: Context) -> list[Message]:
        """Returns and empties the sender's inbox."""
        account = self._accounts.get(ctx.sender)
        if account is None:
            return []
        inbox, account.inbox = account.inbox, []
        return inbox