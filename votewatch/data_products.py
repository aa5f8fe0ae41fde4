from dataclasses import dataclass, field, asdict
from decimal import Decimal
from enum import IntEnum

from eth_utils import to_checksum_address

from .abcs import DataProduct
from .errors import DataIntegrityError
from .utils import to_decimal, to_units


class Support(IntEnum):
    AGAINST = 0
    FOR = 1
    ABSTAIN = 2

    @classmethod
    def from_raw(cls, value):
        try:
            return cls(int(value))
        except (ValueError, TypeError):
            raise DataIntegrityError(f"Unexpected support value {value!r}, expected 0, 1 or 2.")

    @classmethod
    def from_label(cls, label):
        try:
            return cls[label.upper()]
        except KeyError:
            raise DataIntegrityError(f"Unexpected support label {label!r}.")

    @property
    def label(self):
        return self.name.capitalize()


@dataclass
class Vote:
    voter: str
    display_name: str
    support: Support
    voting_power: Decimal  # at the snapshot block
    weight: Decimal        # as counted by the governor when the vote was cast
    timestamp: int
    reason: str = ""
    block_number: int = 0
    transaction_index: int = 0
    log_index: int = 0

    def to_dict(self):
        out = asdict(self)
        out['support'] = self.support.label
        out['voting_power'] = str(self.voting_power)
        out['weight'] = str(self.weight)
        return out

    @classmethod
    def from_dict(cls, d):
        d = dict(d)
        support = d['support']
        d['support'] = Support.from_label(support) if isinstance(support, str) else Support.from_raw(support)
        d['voting_power'] = to_decimal(d['voting_power'])
        d['weight'] = to_decimal(d['weight'])
        return cls(**d)


class Votes(DataProduct):
    """
    Normalizes enriched VoteCast events into Vote records, keeping discovery order.
    """

    def __init__(self, decimals=18):
        self.decimals = decimals
        self.votes = []

    def handle(self, event):

        voter = to_checksum_address(event['voter'])

        vote = Vote(voter=voter,
                    display_name=event.get('display_name') or voter,
                    support=Support.from_raw(event['support']),
                    voting_power=to_decimal(event['voting_power']),
                    weight=to_units(event['weight'], self.decimals),
                    timestamp=int(event['timestamp']),
                    reason=event.get('reason') or "",
                    block_number=int(event['block_number']),
                    transaction_index=int(event.get('transaction_index', 0)),
                    log_index=int(event.get('log_index', 0)))

        self.votes.append(vote)

        return vote

    def __len__(self):
        return len(self.votes)


@dataclass
class DelegateSnapshotEntry:
    address: str
    expected_voting_power: Decimal
    actual_voting_power: Decimal
    prior_rank: int
    current_rank: int = 0
    rank_change: int = 0
    voting_power_change: Decimal = Decimal(0)
    has_voting_power_changed: bool = False
    delegations: int = 0
    on_chain_votes: int = 0

    def to_dict(self):
        out = asdict(self)
        for k in ('expected_voting_power', 'actual_voting_power', 'voting_power_change'):
            out[k] = str(out[k])
        return out

    @classmethod
    def from_dict(cls, d):
        d = dict(d)
        for k in ('expected_voting_power', 'actual_voting_power', 'voting_power_change'):
            d[k] = to_decimal(d[k])
        return cls(**d)


@dataclass
class ProposalVoteResult:
    proposal_id: str
    snapshot_block: int
    votes: list = field(default_factory=list)
    delegate_snapshot: list = field(default_factory=list)
    summary: dict = field(default_factory=dict)
    warnings: list = field(default_factory=list)

    def to_dict(self):
        return {
            'proposal_id': self.proposal_id,
            'snapshot_block': self.snapshot_block,
            'votes': [v.to_dict() for v in self.votes],
            'delegate_snapshot': [e.to_dict() for e in self.delegate_snapshot],
            'summary': self.summary,
            'warnings': list(self.warnings),
        }

    @classmethod
    def from_dict(cls, d):
        return cls(proposal_id=str(d['proposal_id']),
                   snapshot_block=int(d['snapshot_block']),
                   votes=[Vote.from_dict(v) for v in d.get('votes', [])],
                   delegate_snapshot=[DelegateSnapshotEntry.from_dict(e) for e in d.get('delegate_snapshot', [])],
                   summary=d.get('summary', {}),
                   warnings=d.get('warnings', []))
