from decimal import Decimal

import pytest

from votewatch.data_products import Support
from votewatch.enricher import VoteEnricher
from votewatch.errors import DataIntegrityError, TransientFetchFailure

from fakes import make_names, ALICE, BOB, CAROL, E18, PROPOSAL_ID


def event(voter, support=1, weight=E18, block_number=100, reason=""):
    return {'voter': voter,
            'proposal_id': int(PROPOSAL_ID),
            'support': support,
            'weight': weight,
            'reason': reason,
            'block_number': block_number,
            'transaction_index': 0,
            'log_index': 0}


@pytest.mark.asyncio
async def test_enrich_attaches_time_power_and_name(fake_client_factory):

    client = fake_client_factory(voting_power={ALICE: "1500.25"})
    enricher = VoteEnricher(client, make_names({ALICE: 'alice.eth'}))

    enriched, warnings = await enricher.enrich(event(ALICE, block_number=10), snapshot_block=50)

    assert enriched['timestamp'] == 1700000000 + 120
    assert enriched['voting_power'] == Decimal("1500.25")
    assert enriched['display_name'] == 'alice.eth'
    assert warnings == []


@pytest.mark.asyncio
async def test_enrich_name_failure_falls_back_to_address(fake_client_factory):

    enricher = VoteEnricher(fake_client_factory(), make_names(failing=[ALICE]))

    enriched, warnings = await enricher.enrich(event(ALICE), snapshot_block=50)

    assert enriched['display_name'] == ALICE
    assert len(warnings) == 1


@pytest.mark.asyncio
async def test_enrich_power_failure_is_transient(fake_client_factory):

    enricher = VoteEnricher(fake_client_factory(failing_voters=[ALICE]), make_names())

    with pytest.raises(TransientFetchFailure):
        await enricher.enrich(event(ALICE), snapshot_block=50)


@pytest.mark.asyncio
async def test_enrich_rejects_bad_support_before_any_call(fake_client_factory):

    client = fake_client_factory()
    enricher = VoteEnricher(client, make_names())

    with pytest.raises(DataIntegrityError):
        await enricher.enrich(event(ALICE, support=3), snapshot_block=50)

    assert client.calls['get_votes'] == 0
    assert client.calls['get_block_timestamp'] == 0


@pytest.mark.asyncio
async def test_enrich_all_keeps_order_and_drops_failures(fake_client_factory):

    client = fake_client_factory(voting_power={ALICE: 10, BOB: 20, CAROL: 30}, failing_voters=[BOB])
    enricher = VoteEnricher(client, make_names({CAROL: 'carol.eth'}))

    events = [event(CAROL, support=2, weight=3 * E18),
              event(BOB, support=0),
              event(ALICE, support=1, weight=E18 // 4)]

    votes, warnings = await enricher.enrich_all(events, snapshot_block=50)

    assert [v.voter for v in votes.votes] == [CAROL, ALICE]
    assert votes.votes[0].display_name == 'carol.eth'
    assert votes.votes[0].support == Support.ABSTAIN
    assert votes.votes[0].weight == Decimal(3)
    assert votes.votes[1].weight == Decimal("0.25")
    assert votes.votes[1].voting_power == Decimal(10)

    assert len(warnings) == 1
    assert BOB in warnings[0]


@pytest.mark.asyncio
async def test_enrich_all_empty(fake_client_factory):

    votes, warnings = await VoteEnricher(fake_client_factory(), make_names()).enrich_all([], snapshot_block=50)

    assert len(votes) == 0
    assert warnings == []
