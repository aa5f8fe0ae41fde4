from eth_abi.abi import decode as decode_abi
from eth_utils import keccak, to_checksum_address

from web3 import AsyncWeb3, AsyncHTTPProvider
from web3.middleware import ExtraDataToPOAMiddleware
from sanic.log import logger as logr

from .errors import ProposalNotFound
from .utils import camel_to_snake, to_units
from .signatures import VOTE_CAST_1, GOVERNOR_ABI, TOKEN_ABI, load_abis


def as_bytes(x):
    if isinstance(x, str):
        if x[:2] == "0x":
            x = x[2:]
        return bytes.fromhex(x)
    return bytes(x)

def as_int(x):
    if isinstance(x, str) and x[:2] == "0x":
        return int(x, 16)
    return int(x)

def topic_hex(x):
    return "0x" + as_bytes(x).hex()


class VoteCastCaster:
    """
    Turns a raw log into a flat, snake_cased dict.

    Decoding is done locally with eth_abi against the event fragment, so it
    works identically for web3 AttributeDicts (HexBytes) and raw JSON-RPC
    payloads (hex strings).
    """

    def __init__(self, abis):
        self.abis = abis

    def topic(self, signature):

        abi_frag = self.abis.get_by_signature(signature)

        # abifsm topics may come without the 0x prefix.
        topic = abi_frag.topic
        if topic[:2] != "0x":
            topic = "0x" + topic

        return topic.lower()

    def lookup(self, signature):

        abi_frag = self.abis.get_by_signature(signature)

        if abi_frag is None:
            raise KeyError(f"No ABI fragment for '{signature}'")

        inputs = abi_frag.literal['inputs']

        indexed_inputs = [i for i in inputs if i.get('indexed')]
        non_indexed_inputs = [i for i in inputs if not i.get('indexed')]

        def caster_fn(log):

            log_topics = log['topics']

            # Skip topic[0] which is the event sig hash.
            indexed_values = [
                decode_abi([i["type"]], as_bytes(t))[0]
                for i, t in zip(indexed_inputs, log_topics[1:])
            ]
            non_indexed_values = list(decode_abi(
                [i["type"] for i in non_indexed_inputs],
                as_bytes(log['data'])
            ))

            values = indexed_values + non_indexed_values

            out = {
                "block_number": as_int(log["blockNumber"]),
                "transaction_index": as_int(log["transactionIndex"]),
                "log_index": as_int(log["logIndex"]),
            }

            for arg, value in zip(indexed_inputs + non_indexed_inputs, values):
                if arg["type"] == "address":
                    value = to_checksum_address(value)
                elif isinstance(value, bytes):
                    value = value.hex()
                out[camel_to_snake(arg["name"])] = value

            return out

        return caster_fn


class JsonRpcHttpClient:
    """
    Read-only access to the governor and token contracts over JSON-RPC.

    Every method is a single round trip (or a couple of them), awaited
    independently, so callers decide how to fan out.
    """

    def __init__(self, url, governor_address, token_address, use_poa_middleware=False, abis=None):
        self.url = url
        self.use_poa_middleware = use_poa_middleware

        self.abis = abis or load_abis()
        self.caster = VoteCastCaster(self.abis)

        self.w3 = self.connect()

        self.governor_address = to_checksum_address(governor_address)
        self.token_address = to_checksum_address(token_address)

        self.governor = self.w3.eth.contract(address=self.governor_address, abi=GOVERNOR_ABI)
        self.token = self.w3.eth.contract(address=self.token_address, abi=TOKEN_ABI)

    @classmethod
    def from_config(cls, config, abis=None):
        return cls(config.rpc_url,
                   governor_address=config.governor_address,
                   token_address=config.token_address,
                   use_poa_middleware=config.use_poa_middleware,
                   abis=abis)

    def connect(self):

        w3 = AsyncWeb3(AsyncHTTPProvider(self.url))

        if self.use_poa_middleware:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        return w3

    async def is_valid(self):

        if self.url in ('', 'ignored', None):
            ans = False
        else:
            try:
                ans = await self.w3.is_connected()
            except Exception as e:
                logr.warning(f"RPC check failed for {self.url}: {e}")
                ans = False

        if ans:
            logr.info(f"The server '{self.url}' is valid.")
        else:
            logr.info(f"The server '{self.url}' is not valid.")

        return ans

    async def get_block_number(self):
        return await self.w3.eth.block_number

    async def resolve_snapshot_block(self, proposal_id):

        snapshot_block = await self.governor.functions.proposalSnapshot(int(proposal_id)).call()

        if snapshot_block == 0:
            raise ProposalNotFound(f"Proposal {proposal_id} does not exist")

        logr.info(f"Snapshot block for {proposal_id}: {snapshot_block}")

        return int(snapshot_block)

    async def get_logs(self, from_block, to_block, topics):

        event_filter = {
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": self.governor_address,
            "topics": [topics]
        }

        try:
            logs = await self.w3.eth.get_logs(event_filter)
        except Exception as e:
            logr.error(f"Failed to get logs for {self.governor_address} from block {from_block} to {to_block}: {e}")
            raise

        return logs

    async def get_votes(self, account, block_number):
        raw = await self.governor.functions.getVotes(to_checksum_address(account), block_number).call()
        return to_units(raw)

    async def get_past_votes(self, account, block_number):
        raw = await self.token.functions.getPastVotes(to_checksum_address(account), block_number).call()
        return to_units(raw)

    async def get_block_timestamp(self, block_number):
        block = await self.w3.eth.get_block(block_number)
        timestamp = block['timestamp']
        assert isinstance(timestamp, int)
        return timestamp


def vote_cast_topic_from_signature(signature=VOTE_CAST_1):
    return "0x" + keccak(text=signature).hex()
