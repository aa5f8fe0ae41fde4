import json
from pathlib import Path

from abifsm import ABI, ABISet

VOTE_CAST_1 = 'VoteCast(address,uint256,uint8,uint256,string)'

PROPOSAL_SNAPSHOT = 'proposalSnapshot(uint256)'
GET_VOTES = 'getVotes(address,uint256)'
GET_PAST_VOTES = 'getPastVotes(address,uint256)'

ABI_DIR = Path(__file__).parent / 'abis'

GOVERNOR_ABI_PATH = ABI_DIR / 'governor.json'
TOKEN_ABI_PATH = ABI_DIR / 'token.json'


def read_abi(path):
    with open(path) as f:
        return json.load(f)

GOVERNOR_ABI = read_abi(GOVERNOR_ABI_PATH)
TOKEN_ABI = read_abi(TOKEN_ABI_PATH)


def load_abis():
    """The ABISet covering every event this package decodes."""

    gov_abi = ABI.from_file('gov', str(GOVERNOR_ABI_PATH))
    return ABISet('votewatch', [gov_abi])


if __name__ == '__main__':

    from web3 import Web3 as w3

    local_vars = list(locals().items())

    for var, val in local_vars:

        if isinstance(val, str) and "__" not in var and "(" in val:
            print("     " + var)

            print("0x" + w3.keccak(text=val).hex(), " -> ", val)
