#!/usr/bin/env python3
import asyncio
import errno
import json
import socket

from argh import arg, dispatch_commands

from .cache import ensure_cache_dir, clear_cache as clear_cache_dir
from .config import Config
from .logsetup import get_logger
from .service import VotingDataService

logr = get_logger('cli')

MAX_PORT_ATTEMPTS = 20


def port_is_free(host, port):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                return False
            raise
    return True


def find_free_port(host, port, attempts=MAX_PORT_ATTEMPTS):
    for candidate in range(port, port + attempts):
        if port_is_free(host, candidate):
            return candidate
        logr.info(f"Port {candidate} is busy, trying {candidate + 1}...")
    raise RuntimeError(f"No free port in {port}-{port + attempts - 1}")


@arg('--host', help='Interface to bind.')
@arg('--port', help='First port to try.  Defaults to VOTEWATCH_PORT or 3000.')
def serve(host='0.0.0.0', port=None):
    """Run the HTTP API.  Walks up from the requested port until one is free."""

    from .server import app, config

    port = find_free_port(host, int(port or config.port))

    logr.info(f"Server running at http://localhost:{port}")

    app.run(host=host, port=port, single_process=True, access_log=True)


@arg('proposal_id', nargs='?', default=None,
     help='Proposal id, decimal or 0x-hex.  Defaults to VOTEWATCH_DEFAULT_PROPOSAL_ID.')
@arg('--rpc', help='JSON-RPC URL, overriding VOTEWATCH_RPC_URL.')
@arg('--not-voted', help='Print the delegates who have not voted instead of the votes.')
def votes(proposal_id, rpc=None, not_voted=False):
    """Fetch (or load from cache) a proposal's votes and print them as JSON."""

    config = Config.from_env().with_rpc_url(rpc)
    proposal_id = proposal_id or config.default_proposal_id
    ensure_cache_dir(config.cache_dir)

    service = VotingDataService(config)

    result = asyncio.run(service.get_voting_data(proposal_id))
    stats = service.calculate_vote_stats(result)

    if not_voted:
        records = [e.to_dict() for e in service.get_not_voted_delegates(result)]
    else:
        records = [v.to_dict() for v in result.votes]

    print(json.dumps({'proposal_id': result.proposal_id,
                      'snapshot_block': result.snapshot_block,
                      'stats': stats.to_dict(),
                      'warnings': result.warnings,
                      'records': records}, indent=2))


def clear_cache():
    """Delete every cached vote result and delegate snapshot."""

    config = Config.from_env()
    removed = clear_cache_dir(config.cache_dir)
    print(f"Removed {removed} cache file(s) from {config.cache_dir}")


def main():
    dispatch_commands([serve, votes, clear_cache])


if __name__ == '__main__':
    main()
