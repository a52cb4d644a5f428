"""A simple ballot service: an admin opens a vote, accounts vote, the admin closes it."""

from __future__ import annotations

from chainlab.traits import Address, Context


class BallotError(Exception):
    """A ballot operation was refused."""


class Ballot:
    """A ballot over a fixed list of candidates."""

    def __init__(self, ctx: Context, description: str, candidates: list[str]) -> None:
        self._description = description
        self._candidates = list(candidates)
        self._tally = [0] * len(self._candidates)
        self._accepting_votes = True
        self._admin: Address = ctx.sender
        self._voters: dict[Address, int] = {}

    def description(self, ctx: Context) -> str:
        """Returns the description of this ballot."""
        return self._description

    def candidates(self, ctx: Context) -> list[str]:
        """Returns the candidates being voted upon."""
        return list(self._candidates)

    def vote(self, ctx: Context, candidate_num: int) -> None:
        """Casts, or changes, the sender's vote for the candidate at `candidate_num`."""
        if not self._accepting_votes:
            raise BallotError("Voting is closed.")
        if not 0 <= candidate_num < len(self._candidates):
            raise BallotError(f"Invalid candidate `{candidate_num}`.")
        prev_vote = self._voters.get(ctx.sender)
        self._voters[ctx.sender] = candidate_num
        if prev_vote is not None:
            self._tally[prev_vote] -= 1
        self._tally[candidate_num] += 1

    def close(self, ctx: Context) -> None:
        """Stops collecting votes; only the ballot creator may do this."""
        if self._admin != ctx.sender:
            raise BallotError("You cannot close the ballot.")
        self._accepting_votes = False

    def winner(self, ctx: Context) -> int:
        """Returns the index of the candidate with the most votes; ties go to the later one."""
        if self._accepting_votes:
            raise BallotError("Voting is not closed.")
        if not self._tally:
            raise BallotError("There are no candidates.")
        index, _ = max(reversed(list(enumerate(self._tally))), key=lambda item: item[1])
        return index