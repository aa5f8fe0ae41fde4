from dataclasses import dataclass, field

from sanic.log import logger as logr

from .signatures import VOTE_CAST_1


def plan_chunks(start_block, head_block, chunk_size):
    """
    Non-overlapping (from_block, to_block) ranges covering [start_block, head_block].

    Nothing is planned when start_block >= head_block.
    """

    assert chunk_size > 0

    if start_block >= head_block:
        return

    for from_block in range(start_block, head_block + 1, chunk_size):
        to_block = min(from_block + chunk_size - 1, head_block)  # Ensure we don't exceed the head
        yield from_block, to_block


@dataclass
class ChunkResult:
    from_block: int
    to_block: int
    logs: list = field(default_factory=list)
    error: Exception = None

    @property
    def ok(self):
        return self.error is None

    def describe(self):
        return f"{self.from_block}-{self.to_block}"


@dataclass
class ScanResult:
    events: list = field(default_factory=list)
    failed_chunks: list = field(default_factory=list)
    chunk_count: int = 0

    @property
    def warnings(self):
        return [f"Error fetching chunk {chunk.describe()}: {chunk.error}" for chunk in self.failed_chunks]


class LogScanner:
    """
    Walks the governor's full VoteCast history in fixed-size block ranges.

    Logs are only filtered by topic at the RPC layer.  The proposal id isn't
    indexed in the VoteCast event, so matching happens locally after decoding.
    """

    def __init__(self, client, start_block, chunk_size, signature=VOTE_CAST_1):
        self.client = client
        self.start_block = start_block
        self.chunk_size = chunk_size
        self.signature = signature

        self.caster_fn = client.caster.lookup(signature)
        self.topic = client.caster.topic(signature)

    @classmethod
    def from_config(cls, client, config):
        return cls(client, start_block=config.start_block, chunk_size=config.chunk_size)

    async def read_chunks(self, head_block=None):
        """Yields one ChunkResult per planned range, in block order.  Never raises on a fetch."""

        if head_block is None:
            head_block = await self.client.get_block_number()

        for from_block, to_block in plan_chunks(self.start_block, head_block, self.chunk_size):
            try:
                logs = await self.client.get_logs(from_block, to_block, [self.topic])
            except Exception as e:
                logr.warning(f"Error fetching chunk {from_block}-{to_block}: {e}")
                yield ChunkResult(from_block, to_block, error=e)
                continue

            if len(logs):
                logr.info(f"Fetched {len(logs)} logs from block {from_block} to {to_block}")

            yield ChunkResult(from_block, to_block, logs=list(logs))

    def matching_events(self, logs, proposal_id):

        proposal_id = str(proposal_id)

        out = []
        for log in logs:
            try:
                event = self.caster_fn(log)
            except Exception as e:
                logr.warning(f"Could not decode {self.signature} log {log.get('transactionHash')}: {e}")
                continue
            if str(event['proposal_id']) == proposal_id:
                out.append(event)
        return out

    async def scan(self, proposal_id, head_block=None):
        """
        Every decoded VoteCast event for `proposal_id`, in discovery order.

        A chunk that fails is recorded and skipped, so the result is best
        effort rather than all-or-nothing.
        """

        result = ScanResult()

        async for chunk in self.read_chunks(head_block=head_block):
            result.chunk_count += 1

            if not chunk.ok:
                result.failed_chunks.append(chunk)
                continue

            result.events.extend(self.matching_events(chunk.logs, proposal_id))

        logr.info(f"Scanned {result.chunk_count} chunk(s) for proposal {proposal_id}: "
                  f"{len(result.events)} vote(s), {len(result.failed_chunks)} failed chunk(s)")

        return result
