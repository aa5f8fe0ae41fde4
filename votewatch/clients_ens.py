from eth_utils import to_checksum_address
from sanic.log import logger as logr

from .errors import IdentityResolutionFailure


class EnsNameClient:
    """Reverse-resolves addresses to ENS names through web3's AsyncENS."""

    def __init__(self, w3):
        self.w3 = w3

    @classmethod
    def from_client(cls, client):
        return cls(client.w3)

    async def resolve(self, address):

        try:
            name = await self.w3.ens.name(to_checksum_address(address))
        except Exception as e:
            raise IdentityResolutionFailure(f"Failed to resolve ENS for {address}: {e}") from e

        return name or None

    async def display_name(self, address):
        """
        The name to show for an address, and a warning if we had to fall back.
        """

        try:
            name = await self.resolve(address)
        except IdentityResolutionFailure as e:
            logr.warning(str(e))
            return address, str(e)

        return (name or address), None
