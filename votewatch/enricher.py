import asyncio

from sanic.log import logger as logr

from .data_products import Support, Votes
from .errors import TransientFetchFailure


class VoteEnricher:
    """
    Attaches block time, snapshot voting power and a display name to each
    decoded VoteCast event.
    """

    def __init__(self, client, names):
        self.client = client
        self.names = names

    async def enrich(self, event, snapshot_block):
        """
        One event's three lookups, issued together.  Returns (enriched_event, warnings).

        Raises TransientFetchFailure if the timestamp or voting power can't be read.
        A failed name lookup only produces a warning.
        """

        voter = event['voter']

        # Catch an impossible support value before spending any RPC calls on it.
        Support.from_raw(event['support'])

        timestamp, voting_power, (display_name, name_warning) = await asyncio.gather(
            self._fetch(self.client.get_block_timestamp(event['block_number']), f"block {event['block_number']} timestamp"),
            self._fetch(self.client.get_votes(voter, snapshot_block), f"voting power of {voter} at {snapshot_block}"),
            self.names.display_name(voter),
        )

        enriched = dict(event)
        enriched['timestamp'] = timestamp
        enriched['voting_power'] = voting_power
        enriched['display_name'] = display_name

        warnings = [name_warning] if name_warning else []

        return enriched, warnings

    @staticmethod
    async def _fetch(coro, what):
        try:
            return await coro
        except Exception as e:
            raise TransientFetchFailure(f"Failed to fetch {what}: {e}") from e

    async def enrich_all(self, events, snapshot_block, decimals=18):
        """
        Enrich every event concurrently, and normalize the survivors into a
        Votes data product in discovery order.
        """

        outcomes = await asyncio.gather(*[self.enrich(event, snapshot_block) for event in events],
                                        return_exceptions=True)

        votes = Votes(decimals=decimals)
        warnings = []

        for event, outcome in zip(events, outcomes):

            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                msg = f"Dropped vote by {event.get('voter')} in block {event.get('block_number')}: {outcome}"
                logr.warning(msg)
                warnings.append(msg)
                continue

            enriched, event_warnings = outcome
            warnings.extend(event_warnings)
            votes.handle(enriched)

        return votes, warnings
