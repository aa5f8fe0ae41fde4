import json
from decimal import Decimal

import pytest

from votewatch.cache import ExpiringVoteCache, DelegateSnapshotCache
from votewatch.errors import InvalidProposalIdFormat, ProposalNotFound
from votewatch.service import VotingDataService

from fakes import make_vote_log, make_names, PROPOSAL_ID, OTHER_PROPOSAL_ID, ALICE, BOB, CAROL, DAVE, E18


ROSTER = [
    {'address': ALICE, 'votingPower': 5000, 'rank': 1},
    {'address': BOB, 'votingPower': 3000, 'rank': 2},
    {'address': CAROL, 'votingPower': 2000, 'rank': 3},
    {'address': DAVE, 'votingPower': 10, 'rank': 4},
]


@pytest.fixture
def roster_file(config):
    config.delegates_file.write_text(json.dumps(ROSTER))
    return config.delegates_file


def make_service(config, client, names=None):
    return VotingDataService(config, client=client, names=names or make_names({ALICE: 'alice.eth'}))


@pytest.mark.asyncio
async def test_get_voting_data(config, roster_file, fake_client_factory):

    logs = [make_vote_log(ALICE, PROPOSAL_ID, 1, 60 * E18, reason="yes", block_number=120),
            make_vote_log(BOB, OTHER_PROPOSAL_ID, 0, 10 * E18, block_number=130),
            make_vote_log(DAVE, PROPOSAL_ID, 2, 50 * E18, block_number=260)]

    client = fake_client_factory(logs=logs, head_block=300,
                                 voting_power={ALICE: 5000, DAVE: 10},
                                 past_votes={ALICE: 5000, BOB: 3000, CAROL: 2000, DAVE: 10})

    service = make_service(config, client)

    result = await service.get_voting_data(PROPOSAL_ID)

    assert result.proposal_id == PROPOSAL_ID
    assert result.snapshot_block == 50
    assert [v.voter for v in result.votes] == [ALICE, DAVE]
    assert result.votes[0].display_name == 'alice.eth'
    assert result.votes[0].voting_power == Decimal(5000)
    assert result.votes[1].display_name == DAVE
    assert [e.address for e in result.delegate_snapshot] == [ALICE, BOB, CAROL, DAVE]
    assert result.summary['total_delegates'] == 4
    assert result.warnings == []

    stats = service.calculate_vote_stats(result)
    assert stats.for_weight == Decimal(60)
    assert stats.abstain_weight == Decimal(50)
    assert stats.quorum_votes == Decimal(110)
    assert stats.has_reached_quorum

    not_voted = service.get_not_voted_delegates(result)
    assert [e.address for e in not_voted] == [BOB, CAROL]


@pytest.mark.asyncio
async def test_second_call_is_served_from_cache(config, roster_file, fake_client_factory):

    client = fake_client_factory(logs=[make_vote_log(ALICE, PROPOSAL_ID, 1, E18)], head_block=200,
                                 past_votes={ALICE: 5000})

    service = make_service(config, client)

    first = await service.get_voting_data(PROPOSAL_ID)
    calls = dict(client.calls)

    second = await service.get_voting_data(hex(int(PROPOSAL_ID)))

    assert second == first
    assert dict(client.calls) == calls


@pytest.mark.asyncio
async def test_zero_events_is_a_valid_result(config, roster_file, fake_client_factory):

    client = fake_client_factory(head_block=200, past_votes={ALICE: 5000, BOB: 3000, CAROL: 2000, DAVE: 10})
    service = make_service(config, client)

    result = await service.get_voting_data(PROPOSAL_ID)

    assert result.votes == []

    stats = service.calculate_vote_stats(result)
    assert stats.total_votes == 0
    assert not stats.has_reached_quorum
    assert stats.votes_needed_for_quorum == config.quorum

    assert [e.address for e in service.get_not_voted_delegates(result)] == [ALICE, BOB, CAROL]


@pytest.mark.asyncio
async def test_invalid_id_is_rejected_before_chain_access(config, fake_client_factory):

    client = fake_client_factory()
    service = make_service(config, client)

    with pytest.raises(InvalidProposalIdFormat):
        await service.get_voting_data("not-a-number")

    assert sum(client.calls.values()) == 0


@pytest.mark.asyncio
async def test_unknown_proposal(config, fake_client_factory):

    client = fake_client_factory(snapshot_block=0)
    service = make_service(config, client)

    with pytest.raises(ProposalNotFound):
        await service.get_voting_data(PROPOSAL_ID)

    assert client.calls['get_logs'] == 0
    assert ExpiringVoteCache(config.cache_dir, ttl=config.cache_duration).get(PROPOSAL_ID) is None


@pytest.mark.asyncio
async def test_partial_failures_become_warnings(config, roster_file, fake_client_factory):

    logs = [make_vote_log(ALICE, PROPOSAL_ID, 1, E18, block_number=10),
            make_vote_log(BOB, PROPOSAL_ID, 1, E18, block_number=110),
            make_vote_log(CAROL, PROPOSAL_ID, 0, E18, block_number=120)]

    client = fake_client_factory(logs=logs, head_block=199, failing_chunks=[0], failing_voters=[CAROL],
                                 failing_delegates=[DAVE], past_votes={ALICE: 1, BOB: 1, CAROL: 1})

    result = await make_service(config, client).get_voting_data(PROPOSAL_ID)

    assert [v.voter for v in result.votes] == [BOB]
    assert DAVE not in [e.address for e in result.delegate_snapshot]
    assert len(result.warnings) == 3


@pytest.mark.asyncio
async def test_delegate_snapshot_is_cached_forever(config, roster_file, fake_client_factory):

    client = fake_client_factory(past_votes={ALICE: 5000})
    service = make_service(config, client)

    first, _ = await service.get_delegate_snapshot(PROPOSAL_ID, 50)
    calls = client.calls['get_past_votes']

    second, warnings = await service.get_delegate_snapshot(PROPOSAL_ID, 50)

    assert second == first
    assert warnings == []
    assert client.calls['get_past_votes'] == calls
    assert DelegateSnapshotCache(config.cache_dir).get(PROPOSAL_ID) == first


@pytest.mark.asyncio
async def test_incomplete_delegate_snapshot_is_rebuilt(config, roster_file, fake_client_factory):

    flaky = fake_client_factory(failing_delegates=[ALICE, BOB, CAROL, DAVE])

    first, warnings = await make_service(config, flaky).get_delegate_snapshot(PROPOSAL_ID, 50)

    assert first == []
    assert len(warnings) == 4
    assert DelegateSnapshotCache(config.cache_dir).get(PROPOSAL_ID) is None

    healthy = fake_client_factory(past_votes={ALICE: 5000, BOB: 3000, CAROL: 2000, DAVE: 10})

    second, warnings = await make_service(config, healthy).get_delegate_snapshot(PROPOSAL_ID, 50)

    assert [e.address for e in second] == [ALICE, BOB, CAROL, DAVE]
    assert warnings == []
    assert healthy.calls['get_past_votes'] == 4
    assert DelegateSnapshotCache(config.cache_dir).get(PROPOSAL_ID) == second


@pytest.mark.asyncio
async def test_snapshot_with_malformed_roster_entry_is_cached(config, fake_client_factory):

    config.delegates_file.write_text(json.dumps([{'rank': 1}] + ROSTER))
    client = fake_client_factory(past_votes={ALICE: 5000, BOB: 3000, CAROL: 2000, DAVE: 10})

    entries, warnings = await make_service(config, client).get_delegate_snapshot(PROPOSAL_ID, 50)

    assert [e.address for e in entries] == [ALICE, BOB, CAROL, DAVE]
    assert len(warnings) == 1
    assert DelegateSnapshotCache(config.cache_dir).get(PROPOSAL_ID) == entries


@pytest.mark.asyncio
async def test_missing_roster_gives_empty_snapshot(config, fake_client_factory):

    service = make_service(config, fake_client_factory())

    result = await service.get_voting_data(PROPOSAL_ID)

    assert result.delegate_snapshot == []
    assert service.get_not_voted_delegates(result) == []


@pytest.mark.asyncio
async def test_check_rpc_status(config, fake_client_factory):

    assert await make_service(config, fake_client_factory(valid=True)).check_rpc_status() is True
    assert await make_service(config, fake_client_factory(valid=False)).check_rpc_status() is False


def test_with_rpc_url_shares_caches(config, fake_client_factory):

    service = make_service(config, fake_client_factory())

    assert service.with_rpc_url(None) is service
    assert service.with_rpc_url(config.rpc_url) is service

    other = service.with_rpc_url("http://other-node:8545")

    assert other.config.rpc_url == "http://other-node:8545"
    assert other.vote_cache is service.vote_cache
    assert other.snapshot_cache is service.snapshot_cache
    assert other.client is not service.client
