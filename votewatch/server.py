import os
import socket
from datetime import datetime
from importlib.metadata import version as importlib_version, PackageNotFoundError

from sanic_ext import openapi
from sanic import Sanic
from sanic.response import json

from . import __version__
from .cache import ensure_cache_dir, clear_cache
from .config import Config
from .logsetup import get_logger
from .middleware import start_timer, add_server_timing_header, measure, handle_votewatch_error
from .errors import VoteWatchError
from .service import VotingDataService
from .utils import secret_text

BOOT_TIME = datetime.now().isoformat()

glogr = get_logger('global')

glogr.info(f"{BOOT_TIME=}")

GIT_COMMIT_SHA = os.getenv('GIT_COMMIT_SHA', 'n/a')


class VoteWatchContext:
    def __init__(self, config):
        self.config = config
        self.service = None


config = Config.from_env()
glogr.info(config.public())

app = Sanic('VoteWatch', ctx=VoteWatchContext(config))
app.middleware('request')(start_timer)
app.middleware('response')(add_server_timing_header)
app.exception(VoteWatchError)(handle_votewatch_error)


@app.before_server_start
async def setup_service(app):

    # Nothing cached by a previous process is trusted.
    ensure_cache_dir(app.ctx.config.cache_dir)
    clear_cache(app.ctx.config.cache_dir)

    app.ctx.service = VotingDataService(app.ctx.config)


######################################################################
#
# Application Endpoints
#
######################################################################

DEFAULT_PAGE_SIZE = 50
DEFAULT_OFFSET = 0

VOTE_SORT_KEYS = {
    'timestamp': lambda v: (v.block_number, v.transaction_index, v.log_index),
    'weight': lambda v: v.weight,
    'voting_power': lambda v: v.voting_power,
    'voter': lambda v: v.display_name.lower(),
    'support': lambda v: int(v.support),
}

DELEGATE_SORT_KEYS = {
    'voting_power': lambda e: e.actual_voting_power,
    'rank': lambda e: e.current_rank,
    'rank_change': lambda e: e.rank_change,
    'voting_power_change': lambda e: e.voting_power_change,
}


class InvalidQueryParameter(VoteWatchError):
    status_code = 400


def request_service(app, request):
    rpc_url = request.args.get("rpc")
    return app.ctx.service.with_rpc_url(rpc_url), rpc_url or app.ctx.service.config.rpc_url


def int_arg(request, name, default, minimum):
    value = request.args.get(name, default)
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise InvalidQueryParameter(f"Invalid {name}: {value!r}.  Expected an integer.")
    if value < minimum:
        raise InvalidQueryParameter(f"Invalid {name}: {value}.  Expected {minimum} or more.")
    return value


def paginate(items, request):
    offset = int_arg(request, "offset", DEFAULT_OFFSET, 0)
    page_size = int_arg(request, "page_size", DEFAULT_PAGE_SIZE, 1)

    items = items[offset:]
    has_more = len(items) > page_size
    return items[:page_size], has_more


def sort_records(records, sort_keys, sort_by, reverse):
    if sort_by not in sort_keys:
        raise InvalidQueryParameter(f"Invalid sort_by: {sort_by}.  Expected one of {sorted(sort_keys)}")
    return sorted(records, key=sort_keys[sort_by], reverse=reverse)


@app.route('/v1/votes/<proposal_id>')
@openapi.tag("Proposal Votes")
@openapi.summary("Votes cast on a proposal, or the delegates who haven't voted yet.")
@openapi.description("""
## Description
Every VoteCast event for the proposal, enriched with the voter's voting power at the snapshot block,
their ENS name and the block time.  Also includes the aggregate vote statistics and quorum status.

## Methodology
The first request scans the governor's full VoteCast history in block chunks and caches the result for
`cache_duration` seconds.  Stats and the not-voted list are derived on every request.
""")
@openapi.parameter("view", str, location="query", required=False, default="voted",
                   description="'voted' for cast votes, 'not_voted' for delegates above the voting power floor who haven't voted.")
@openapi.parameter("sort_by", str, location="query", required=False, default="timestamp",
                   description="Votes: timestamp, weight, voting_power, voter, support.  Delegates: voting_power, rank, rank_change, voting_power_change.")
@openapi.parameter("reverse", bool, location="query", required=False, default=False,
                   description="To sort descending (largest value first) set to true.")
@openapi.parameter("page_size", int, location="query", required=False, default=DEFAULT_PAGE_SIZE,
                   description="Number of records to return in one response.")
@openapi.parameter("offset", int, location="query", required=False, default=DEFAULT_OFFSET,
                   description="Number of records to skip (ie zero-indexed) from the start.")
@openapi.parameter("rpc", str, location="query", required=False,
                   description="JSON-RPC URL to use for this request instead of the configured one.")
@measure
async def votes(request, proposal_id):
    return await votes_handler(app, request, proposal_id)


@app.route('/v1/votes')
@openapi.tag("Proposal Votes")
@openapi.summary("Same as /v1/votes/<proposal_id>, for the configured default proposal.")
@measure
async def default_votes(request):
    return await votes_handler(app, request, None)

async def votes_handler(app, request, proposal_id):

    view = request.args.get("view", "voted").lower()
    reverse = request.args.get("reverse", "false").lower() == "true"

    service, rpc_url = request_service(app, request)
    rpc_active = await service.check_rpc_status()

    if proposal_id is None:
        proposal_id = service.config.default_proposal_id

    result = await service.get_voting_data(proposal_id)
    stats = service.calculate_vote_stats(result)

    if view == 'voted':
        records = sort_records(result.votes, VOTE_SORT_KEYS, request.args.get("sort_by", "timestamp"), reverse)
    elif view == 'not_voted':
        records = sort_records(service.get_not_voted_delegates(result), DELEGATE_SORT_KEYS,
                               request.args.get("sort_by", "voting_power"), reverse)
    else:
        raise InvalidQueryParameter(f"Invalid view: {view}.  Expected 'voted' or 'not_voted'")

    total = len(records)
    records, has_more = paginate(records, request)

    return json({'proposal_id': result.proposal_id,
                 'snapshot_block': result.snapshot_block,
                 'rpc': {'url': secret_text(rpc_url, 12), 'active': rpc_active},
                 'view': view,
                 'stats': stats.to_dict(),
                 'summary': result.summary,
                 'warnings': result.warnings,
                 'total': total,
                 'records': [r.to_dict() for r in records],
                 'has_more': has_more})


@app.route('/v1/stats/<proposal_id>')
@openapi.tag("Proposal Votes")
@openapi.summary("Vote counts, weights and quorum status for a proposal.")
@measure
async def stats(request, proposal_id):
    return await stats_handler(app, request, proposal_id)

async def stats_handler(app, request, proposal_id):

    service, _ = request_service(app, request)

    result = await service.get_voting_data(proposal_id)

    return json({'proposal_id': result.proposal_id,
                 'stats': service.calculate_vote_stats(result).to_dict()})


@app.route('/v1/delegates/<proposal_id>')
@openapi.tag("Delegate Snapshot")
@openapi.summary("Every rostered delegate's voting power at the proposal's snapshot block.")
@openapi.parameter("sort_by", str, location="query", required=False, default="rank",
                   description="voting_power, rank, rank_change or voting_power_change.")
@openapi.parameter("reverse", bool, location="query", required=False, default=False,
                   description="To sort descending (largest value first) set to true.")
@measure
async def delegates(request, proposal_id):
    return await delegates_handler(app, request, proposal_id)

async def delegates_handler(app, request, proposal_id):

    reverse = request.args.get("reverse", "false").lower() == "true"

    service, _ = request_service(app, request)

    result = await service.get_voting_data(proposal_id)

    entries = sort_records(result.delegate_snapshot, DELEGATE_SORT_KEYS, request.args.get("sort_by", "rank"), reverse)

    return json({'proposal_id': result.proposal_id,
                 'snapshot_block': result.snapshot_block,
                 'summary': result.summary,
                 'delegates': [e.to_dict() for e in entries]})


##################################
#
# Checks
#
##################################

@app.get("/check-rpc")
@openapi.tag("Checks")
@openapi.summary("Whether a JSON-RPC endpoint is reachable")
async def check_rpc(request):
    return await check_rpc_handler(app, request)

async def check_rpc_handler(app, request):
    rpc_url = request.args.get("rpc")
    active = await app.ctx.service.check_rpc_status(rpc_url)
    return json({'active': active})


def package_versions():
    out = {}
    for mod in ['web3', 'sanic', 'sanic-ext', 'abifsm']:
        try:
            out[mod] = importlib_version(mod)
        except PackageNotFoundError:
            out[mod] = None
    return out

@app.get("/health")
@openapi.tag("Checks")
@openapi.summary("Server health check")
async def health_check(request):
    return await health_handler(app, request)

async def health_handler(app, request):

    try:
        files = sorted(os.listdir(app.ctx.config.cache_dir))
    except OSError as e:
        return json({"status": "error", "message": str(e)}, status=500)

    try:
        ip_address = socket.gethostbyname(socket.gethostname())
    except OSError:
        ip_address = "unknown"

    return json({
        "status": "ok",
        "boot_time": BOOT_TIME,
        "cache_files": files,
        "ip_address": ip_address,
        "config": app.ctx.config.public(),
        "version": __version__,
        "gitsha": GIT_COMMIT_SHA,
        "env": {'PipDistributions': package_versions()}
    })


from textwrap import dedent
app.ext.openapi.describe(
    f"Vote Watch for {config.friendly_short_name}",
    version=__version__,
    description=dedent(
        """
# About

Vote Watch is a read-only API over a governor's VoteCast history, for one proposal at a time.

Each response includes a [`server-timing`](https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Server-Timing) header,
denominated in milliseconds.

## Caching

- Vote results are cached per proposal for `cache_duration` seconds.  The cache is cleared when the server starts.
- Delegate snapshots are cached per proposal forever, since they're computed at a historical block.
"""
    ),
)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=config.port, single_process=True)
