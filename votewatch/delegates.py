import asyncio
import json
from decimal import Decimal
from pathlib import Path

from eth_utils import to_checksum_address
from sanic.log import logger as logr

from .data_products import DelegateSnapshotEntry
from .utils import to_decimal

VOTING_POWER_CHANGE_TOLERANCE = Decimal("0.1")


def load_roster(path):
    """
    The static delegate list, as a list of {address, votingPower, delegations, onChainVotes, rank} dicts.

    A missing file is an empty roster, not an error.
    """

    path = Path(path)

    if not path.exists():
        logr.warning(f"No delegate roster at {path}, the delegate snapshot will be empty.")
        return []

    with open(path) as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get('delegates', [])

    return data


class DelegateSnapshotBuilder:
    """
    Re-measures every rostered delegate's voting power at a proposal's snapshot
    block, and re-ranks them.
    """

    def __init__(self, client, tolerance=VOTING_POWER_CHANGE_TOLERANCE):
        self.client = client
        self.tolerance = tolerance
        self.complete = True

    async def build(self, roster, snapshot_block):
        """
        Returns (entries, warnings).  Malformed roster entries are skipped, and
        delegates whose power can't be read are dropped.

        `complete` is False after a build that dropped a delegate on a failed read.
        """

        delegates = []
        warnings = []

        for delegate in roster:
            try:
                address = to_checksum_address(delegate['address'])
            except (KeyError, TypeError, ValueError) as e:
                msg = f"Skipping malformed roster entry {delegate!r:.100}: {e!r}"
                logr.warning(msg)
                warnings.append(msg)
                continue
            delegates.append((address, delegate))

        outcomes = await asyncio.gather(*[self.client.get_past_votes(address, snapshot_block)
                                          for address, _ in delegates],
                                        return_exceptions=True)

        entries = []
        self.complete = True

        for (address, delegate), outcome in zip(delegates, outcomes):

            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                msg = f"Failed to fetch voting power for delegate {address}: {outcome}"
                logr.warning(msg)
                warnings.append(msg)
                self.complete = False
                continue

            entries.append(DelegateSnapshotEntry(address=address,
                                                 expected_voting_power=to_decimal(delegate.get('votingPower')),
                                                 actual_voting_power=to_decimal(outcome),
                                                 prior_rank=int(delegate.get('rank') or 0),
                                                 delegations=int(delegate.get('delegations') or 0),
                                                 on_chain_votes=int(delegate.get('onChainVotes') or 0)))

        return self.rank(entries), warnings

    def rank(self, entries):

        # list.sort is stable, so equal power keeps roster order.
        entries = sorted(entries, key=lambda e: e.actual_voting_power, reverse=True)

        for i, entry in enumerate(entries):
            entry.current_rank = i + 1
            entry.rank_change = entry.prior_rank - entry.current_rank
            entry.voting_power_change = entry.actual_voting_power - entry.expected_voting_power
            entry.has_voting_power_changed = abs(entry.voting_power_change) > self.tolerance

        return entries


def summarize_snapshot(entries, top_n=10):
    return {
        'total_delegates': len(entries),
        'significant_changes': sum(1 for e in entries if e.has_voting_power_changed),
        'top_delegates': [{'address': e.address, 'voting_power': str(e.actual_voting_power)}
                          for e in entries[:top_n]],
    }
