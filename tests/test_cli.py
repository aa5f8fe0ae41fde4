import json
from dataclasses import replace

import pytest

from votewatch import cli
from votewatch.cache import DelegateSnapshotCache
from votewatch.service import VotingDataService

from fakes import make_vote_log, make_names, PROPOSAL_ID, ALICE, BOB, E18


def test_find_free_port_walks_up(monkeypatch):

    busy = {3000, 3001}
    monkeypatch.setattr(cli, 'port_is_free', lambda host, port: port not in busy)

    assert cli.find_free_port('0.0.0.0', 3000) == 3002


def test_find_free_port_gives_up(monkeypatch):

    monkeypatch.setattr(cli, 'port_is_free', lambda host, port: False)

    with pytest.raises(RuntimeError):
        cli.find_free_port('0.0.0.0', 3000, attempts=3)


@pytest.fixture
def patched_cli(monkeypatch, config, fake_client_factory):

    config.delegates_file.write_text(json.dumps([{'address': ALICE, 'votingPower': 5000, 'rank': 1},
                                                 {'address': BOB, 'votingPower': 4000, 'rank': 2}]))

    client = fake_client_factory(logs=[make_vote_log(ALICE, PROPOSAL_ID, 1, 5 * E18, block_number=10)],
                                 head_block=100, voting_power={ALICE: 5000}, past_votes={ALICE: 5000, BOB: 4000})

    monkeypatch.setattr(cli.Config, 'from_env', classmethod(lambda cls, config_file=None: config))
    monkeypatch.setattr(cli, 'VotingDataService',
                        lambda config: VotingDataService(config, client=client, names=make_names()))

    return config


def printed_json(capsys):
    out = capsys.readouterr().out
    return json.loads(out[out.index("{\n"):])


def test_votes_command(patched_cli, capsys):

    cli.votes(PROPOSAL_ID)

    out = printed_json(capsys)

    assert out['proposal_id'] == PROPOSAL_ID
    assert [r['voter'] for r in out['records']] == [ALICE]
    assert out['stats']['for_count'] == 1


def test_votes_command_not_voted(patched_cli, capsys):

    cli.votes(PROPOSAL_ID, not_voted=True)

    out = printed_json(capsys)

    assert [r['address'] for r in out['records']] == [BOB]


def test_clear_cache_command(patched_cli, capsys):

    DelegateSnapshotCache(patched_cli.cache_dir).put(PROPOSAL_ID, [])

    cli.clear_cache()

    assert "Removed 1 cache file(s)" in capsys.readouterr().out


def test_votes_command_defaults_to_configured_proposal(patched_cli, monkeypatch, capsys):

    config = replace(patched_cli, default_proposal_id=hex(int(PROPOSAL_ID)))
    monkeypatch.setattr(cli.Config, 'from_env', classmethod(lambda cls, config_file=None: config))

    cli.votes(None)

    out = printed_json(capsys)

    assert out['proposal_id'] == PROPOSAL_ID
    assert [r['voter'] for r in out['records']] == [ALICE]
