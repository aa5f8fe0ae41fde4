import os
from dataclasses import dataclass, replace, asdict
from decimal import Decimal
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .utils import secret_text, to_decimal

DEFAULT_RPC_URL = "http://nethermind.public.dappnode:8545"
DEFAULT_GOVERNOR_ADDRESS = "0x323a76393544d5ecca80cd6ef2a560c6a395b7e3" # ENS Governor
DEFAULT_TOKEN_ADDRESS = "0xc18360217d8f7ab5e7c516566761ea12ce7f9d72"    # ENS Token
DEFAULT_PROPOSAL_ID = "31309365093913580207991288430108338667724061355449265288906484597789511363394"

# First block worth scanning for VoteCast events.
DEFAULT_START_BLOCK = 21723989
DEFAULT_CHUNK_SIZE = 100_000

DEFAULT_QUORUM = Decimal("1000000")
DEFAULT_MINIMUM_VOTING_POWER = Decimal("1000")

# The DAO wallet holds delegated power but never votes.
DEFAULT_EXCLUDED_ADDRESSES = ("0xfe89cc7abb2c4183683ab71653c4cdc9b02d44b7",)

TRUTHY = ('true', '1', 'yes')


def resolve_provider_url(url):

    # This pattern enables a deployer to put either the base URL in plain text or the full URL in
    # plain text, leaving the API key in an optional secret.

    if not url:
        return url

    if 'alchemy.com' in url:
        url = url + os.getenv('ALCHEMY_API_KEY', '')

    if 'quiknode.pro' in url:
        url = url + os.getenv('QUICKNODE_API_KEY', '')

    return url


@dataclass(frozen=True)
class Config:
    rpc_url: str = DEFAULT_RPC_URL
    governor_address: str = DEFAULT_GOVERNOR_ADDRESS
    token_address: str = DEFAULT_TOKEN_ADDRESS
    cache_dir: Path = Path("./cache")
    port: int = 3000
    cache_duration: int = 3600  # seconds
    start_block: int = DEFAULT_START_BLOCK
    chunk_size: int = DEFAULT_CHUNK_SIZE
    default_proposal_id: str = DEFAULT_PROPOSAL_ID
    delegates_file: Path = Path("./data/delegates.json")
    quorum: Decimal = DEFAULT_QUORUM
    minimum_voting_power: Decimal = DEFAULT_MINIMUM_VOTING_POWER
    excluded_addresses: tuple = DEFAULT_EXCLUDED_ADDRESSES
    top_n: int = 10
    use_poa_middleware: bool = False
    friendly_short_name: str = "ENS DAO"

    @classmethod
    def from_env(cls, config_file=None):
        """
        Build a Config from (lowest to highest precedence) defaults, an optional
        YAML file and VOTEWATCH_* environment variables.
        """

        load_dotenv()

        values = {}

        config_file = config_file or os.getenv('VOTEWATCH_CONFIG_FILE')
        if config_file and Path(config_file).exists():
            with open(config_file, 'r') as f:
                values.update(yaml.safe_load(f) or {})

        for name in cls.__dataclass_fields__:
            env_value = os.getenv(f'VOTEWATCH_{name.upper()}')
            if env_value is not None:
                values[name] = env_value

        return cls.coerce(values)

    @classmethod
    def coerce(cls, values):

        fields = cls.__dataclass_fields__
        unknown = set(values) - set(fields)
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        out = {}
        for name, value in values.items():
            if name in ('port', 'cache_duration', 'start_block', 'chunk_size', 'top_n'):
                value = int(value)
            elif name in ('quorum', 'minimum_voting_power'):
                value = to_decimal(value)
            elif name in ('cache_dir', 'delegates_file'):
                value = Path(value)
            elif name == 'use_poa_middleware':
                value = str(value).lower() in TRUTHY
            elif name == 'excluded_addresses':
                if isinstance(value, str):
                    value = [v for v in value.split(',') if v.strip()]
                value = tuple(v.strip().lower() for v in value)
            elif name == 'default_proposal_id':
                value = str(value)
            out[name] = value

        if 'rpc_url' in out:
            out['rpc_url'] = resolve_provider_url(out['rpc_url'])

        config = cls(**out)

        if config.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if config.cache_duration < 0:
            raise ValueError("cache_duration can't be negative")

        return config

    def with_rpc_url(self, rpc_url):
        if not rpc_url or rpc_url == self.rpc_url:
            return self
        return replace(self, rpc_url=resolve_provider_url(rpc_url))

    def public(self):
        """Config safe to log or return from /health."""
        out = {k: str(v) if isinstance(v, (Path, Decimal)) else v for k, v in asdict(self).items()}
        out['rpc_url'] = secret_text(self.rpc_url, 12)
        out['excluded_addresses'] = list(self.excluded_addresses)
        return out
