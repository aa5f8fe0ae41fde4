from decimal import Decimal

import pytest

from votewatch.config import Config
from votewatch.signatures import load_abis

from fakes import FakeChainClient, make_names


@pytest.fixture(scope="session")
def abis():
    return load_abis()


@pytest.fixture
def fake_client_factory(abis):
    def factory(**kwargs):
        return FakeChainClient(abis, **kwargs)
    return factory


@pytest.fixture
def names_factory():
    return make_names


@pytest.fixture
def config(tmp_path):
    return Config(rpc_url="http://localhost:8545",
                  cache_dir=tmp_path / "cache",
                  delegates_file=tmp_path / "delegates.json",
                  start_block=0,
                  chunk_size=100,
                  cache_duration=3600,
                  quorum=Decimal("100"),
                  minimum_voting_power=Decimal("1000"),
                  excluded_addresses=())
