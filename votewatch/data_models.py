from dataclasses import dataclass
from decimal import Decimal

from .data_products import Support


@dataclass(frozen=True)
class VoteStats:
    total_votes: int
    total_weight: Decimal
    for_count: int
    for_weight: Decimal
    against_count: int
    against_weight: Decimal
    abstain_count: int
    abstain_weight: Decimal
    quorum: Decimal
    quorum_votes: Decimal
    has_reached_quorum: bool
    votes_needed_for_quorum: Decimal

    def to_dict(self):
        return {k: (str(v) if isinstance(v, Decimal) else v) for k, v in self.__dict__.items()}


def compute_stats(votes, quorum):
    """
    Counts and summed weight per choice, and quorum status.

    Abstentions count toward quorum, votes against don't.  Sums are exact
    Decimals, so the result doesn't depend on vote order.
    """

    counts = {s: 0 for s in Support}
    weights = {s: Decimal(0) for s in Support}

    for vote in votes:
        counts[vote.support] += 1
        weights[vote.support] += vote.weight

    quorum = Decimal(quorum)
    quorum_votes = weights[Support.FOR] + weights[Support.ABSTAIN]

    return VoteStats(total_votes=sum(counts.values()),
                     total_weight=sum(weights.values(), Decimal(0)),
                     for_count=counts[Support.FOR],
                     for_weight=weights[Support.FOR],
                     against_count=counts[Support.AGAINST],
                     against_weight=weights[Support.AGAINST],
                     abstain_count=counts[Support.ABSTAIN],
                     abstain_weight=weights[Support.ABSTAIN],
                     quorum=quorum,
                     quorum_votes=quorum_votes,
                     has_reached_quorum=quorum_votes >= quorum,
                     votes_needed_for_quorum=max(Decimal(0), quorum - quorum_votes))


def compute_not_yet_voted(delegate_snapshot, votes, minimum_voting_power, excluded_addresses=()):
    """
    Delegates with at least `minimum_voting_power` at the snapshot block who
    haven't voted, largest first.  Address comparison ignores case.
    """

    voted = {vote.voter.lower() for vote in votes}
    excluded = {addr.lower() for addr in excluded_addresses}

    out = [entry for entry in delegate_snapshot
           if entry.address.lower() not in voted
           and entry.address.lower() not in excluded
           and entry.actual_voting_power >= minimum_voting_power]

    out.sort(key=lambda e: e.actual_voting_power, reverse=True)

    return out
