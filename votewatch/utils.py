import re
from decimal import Decimal

from .errors import InvalidProposalIdFormat

pattern = re.compile(r"(?<=[a-z])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
def camel_to_snake(a_str):
    return pattern.sub('_', a_str).lower()

DEFAULT_DECIMALS = 18

def to_units(raw, decimals=DEFAULT_DECIMALS):
    """Scale an on-chain integer amount into a Decimal with `decimals` fraction digits."""
    return Decimal(int(raw)).scaleb(-1 * decimals)

def to_decimal(value):
    if isinstance(value, Decimal):
        return value
    if value is None or value == '':
        return Decimal(0)
    # str() first, so floats from a JSON roster keep their printed form.
    return Decimal(str(value))

def validate_proposal_id(proposal_id):
    """
    Return the canonical decimal string for a proposal id.

    Proposal ids are uint256, so they're carried as strings everywhere to avoid
    any precision loss.  Accepts ints, decimal strings and 0x-prefixed hex.
    """

    if proposal_id is None or (isinstance(proposal_id, str) and not proposal_id.strip()):
        raise InvalidProposalIdFormat("Proposal ID is required")

    if isinstance(proposal_id, bool):
        raise InvalidProposalIdFormat(f"Invalid proposal ID format: {proposal_id!r}")

    if isinstance(proposal_id, int):
        value = proposal_id
    else:
        text = str(proposal_id).strip()
        try:
            if text[:2].lower() == '0x':
                value = int(text, 16)
            else:
                if not text.isdigit():
                    raise ValueError(text)
                value = int(text)
        except ValueError:
            raise InvalidProposalIdFormat(f"Invalid proposal ID format: {proposal_id!r}")

    if value < 0 or value >= 2 ** 256:
        raise InvalidProposalIdFormat(f"Proposal ID out of uint256 range: {proposal_id!r}")

    return str(value)

def secret_text(t, n):
    if len(t) > ((2 * n) + 3):
        return t[:n] + "..." + t[-1 * n:]
    else:
        return t[:n] + "***..."
