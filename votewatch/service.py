import time

from sanic.log import logger as logr

from .cache import ExpiringVoteCache, DelegateSnapshotCache
from .clients_ens import EnsNameClient
from .clients_httpjson import JsonRpcHttpClient
from .data_models import compute_stats, compute_not_yet_voted
from .data_products import ProposalVoteResult
from .delegates import DelegateSnapshotBuilder, load_roster, summarize_snapshot
from .enricher import VoteEnricher
from .scanner import LogScanner
from .utils import validate_proposal_id


class VotingDataService:
    """
    Everything the HTTP layer and the CLI need: build (or load) a proposal's
    votes, and derive stats and the not-voted list from them.
    """

    def __init__(self, config, client=None, names=None, vote_cache=None, snapshot_cache=None, roster_loader=load_roster):
        self.config = config

        self.client = client or JsonRpcHttpClient.from_config(config)
        self.names = names or EnsNameClient.from_client(self.client)

        self.vote_cache = vote_cache or ExpiringVoteCache(config.cache_dir, ttl=config.cache_duration)
        self.snapshot_cache = snapshot_cache or DelegateSnapshotCache(config.cache_dir)

        self.roster_loader = roster_loader

    def with_rpc_url(self, rpc_url):
        """Same caches, but chain reads go to `rpc_url`."""

        if not rpc_url or rpc_url == self.config.rpc_url:
            return self

        config = self.config.with_rpc_url(rpc_url)

        return VotingDataService(config,
                                 vote_cache=self.vote_cache,
                                 snapshot_cache=self.snapshot_cache,
                                 roster_loader=self.roster_loader)

    async def check_rpc_status(self, rpc_url=None):
        if rpc_url and rpc_url != self.config.rpc_url:
            return await self.with_rpc_url(rpc_url).client.is_valid()
        return await self.client.is_valid()

    async def get_delegate_snapshot(self, proposal_id, snapshot_block):
        """Returns (entries, warnings).  Served from the immutable cache when present."""

        proposal_id = validate_proposal_id(proposal_id)

        cached = self.snapshot_cache.get(proposal_id)
        if cached is not None:
            logr.info(f"Delegate snapshot for {proposal_id} served from cache")
            return cached, []

        roster = self.roster_loader(self.config.delegates_file)

        builder = DelegateSnapshotBuilder(self.client)
        entries, warnings = await builder.build(roster, snapshot_block)

        # Only a complete snapshot is immutable.
        if not builder.complete:
            logr.warning(f"Delegate snapshot for {proposal_id} is incomplete, not caching it")
        else:
            self.snapshot_cache.put(proposal_id, entries)

        return entries, warnings

    async def get_voting_data(self, proposal_id):

        proposal_id = validate_proposal_id(proposal_id)

        cached = self.vote_cache.get(proposal_id)
        if cached is not None:
            logr.info(f"Votes for {proposal_id} served from cache")
            return cached

        start = time.perf_counter()

        snapshot_block = await self.client.resolve_snapshot_block(proposal_id)

        delegate_snapshot, warnings = await self.get_delegate_snapshot(proposal_id, snapshot_block)

        scanner = LogScanner.from_config(self.client, self.config)
        scan = await scanner.scan(proposal_id)
        warnings.extend(scan.warnings)

        enricher = VoteEnricher(self.client, self.names)
        votes, enrich_warnings = await enricher.enrich_all(scan.events, snapshot_block)
        warnings.extend(enrich_warnings)

        result = ProposalVoteResult(proposal_id=proposal_id,
                                    snapshot_block=snapshot_block,
                                    votes=votes.votes,
                                    delegate_snapshot=delegate_snapshot,
                                    summary=summarize_snapshot(delegate_snapshot, self.config.top_n),
                                    warnings=warnings)

        self.vote_cache.put(proposal_id, result)

        logr.info(f"Built votes for {proposal_id}: {len(result.votes)} votes, "
                  f"{len(delegate_snapshot)} delegates, {len(warnings)} warnings [{time.perf_counter() - start:.2f}s]")

        return result

    def calculate_vote_stats(self, result):
        return compute_stats(result.votes, self.config.quorum)

    def get_not_voted_delegates(self, result):
        return compute_not_yet_voted(result.delegate_snapshot,
                                     result.votes,
                                     minimum_voting_power=self.config.minimum_voting_power,
                                     excluded_addresses=self.config.excluded_addresses)
