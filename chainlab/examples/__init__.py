"""Sample services that take a call context: ballot, greetings, token, message board, auctions."""

__all__ = ["ballot", "hello_world", "erc20", "messaging", "auctions"]