import json
import os
import tempfile
import time
from decimal import InvalidOperation
from pathlib import Path

from sanic.log import logger as logr

from .abcs import Repository
from .data_products import ProposalVoteResult, DelegateSnapshotEntry
from .errors import CacheIOFailure, DataIntegrityError


def ensure_cache_dir(cache_dir):
    try:
        Path(cache_dir).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheIOFailure(f"Could not create cache dir {cache_dir}: {e}") from e


def clear_cache(cache_dir):
    """Deletes every cache file.  Returns the number of files removed."""

    cache_dir = Path(cache_dir)

    try:
        files = [p for p in cache_dir.iterdir() if p.is_file()]
    except FileNotFoundError:
        return 0
    except OSError as e:
        raise CacheIOFailure(f"Could not list cache dir {cache_dir}: {e}") from e

    for p in files:
        try:
            p.unlink()
        except FileNotFoundError:
            pass  # another process beat us to it
        except OSError as e:
            raise CacheIOFailure(f"Could not remove {p}: {e}") from e

    logr.info(f"Cache cleared ({len(files)} files)")

    return len(files)


class FileRepository(Repository):
    """One JSON file per proposal id under `cache_dir`."""

    prefix = None

    def __init__(self, cache_dir):
        self.cache_dir = Path(cache_dir)

    def path_for(self, proposal_id):
        return self.cache_dir / f"{self.prefix}-{proposal_id}.json"

    def read(self, proposal_id):

        path = self.path_for(proposal_id)

        try:
            with open(path, "r") as f:
                text = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheIOFailure(f"Could not read {path}: {e}") from e

        try:
            return json.loads(text)
        except ValueError as e:
            logr.warning(f"Ignoring unreadable cache file {path}: {e}")
            return None

    def write(self, proposal_id, payload):

        path = self.path_for(proposal_id)

        # Write to a sibling temp file and swap it in, so a concurrent reader
        # never sees half a file and the last writer wins.
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=self.cache_dir)
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                raise
        except OSError as e:
            raise CacheIOFailure(f"Could not write {path}: {e}") from e

        return path

    def malformed(self, proposal_id, detail):
        """Anything other than a well-formed entry is a miss."""
        if detail is not None:
            logr.warning(f"Ignoring malformed cache file {self.path_for(proposal_id)}: {detail!r:.200}")
        return None


class ExpiringVoteCache(FileRepository):
    """
    Full ProposalVoteResult per proposal, valid for `ttl` seconds after it was stored.

    Expired entries are left alone, and replaced by the next successful build.
    """

    prefix = 'proposal'

    def __init__(self, cache_dir, ttl, clock=time.time):
        super().__init__(cache_dir)
        self.ttl = ttl
        self.clock = clock

    def get(self, proposal_id):

        cached = self.read(proposal_id)

        if not isinstance(cached, dict) or 'result' not in cached:
            return self.malformed(proposal_id, cached)

        stored_at = cached.get('stored_at')
        if not isinstance(stored_at, (int, float)) or stored_at + self.ttl <= self.clock():
            return None

        try:
            return ProposalVoteResult.from_dict(cached['result'])
        except (KeyError, TypeError, ValueError, InvalidOperation, DataIntegrityError) as e:
            return self.malformed(proposal_id, e)

    def put(self, proposal_id, value):
        return self.write(proposal_id, {'stored_at': self.clock(), 'result': value.to_dict()})


class DelegateSnapshotCache(FileRepository):
    """
    The delegate snapshot for a proposal.  Write once, read forever: the
    snapshot block is in the past, so the state it was computed from can't change.
    """

    prefix = 'delegates'

    def get(self, proposal_id):

        cached = self.read(proposal_id)

        if not isinstance(cached, dict) or not isinstance(cached.get('entries'), list):
            return self.malformed(proposal_id, cached)

        try:
            return [DelegateSnapshotEntry.from_dict(e) for e in cached['entries']]
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            return self.malformed(proposal_id, e)

    def put(self, proposal_id, value):
        return self.write(proposal_id, {'entries': [e.to_dict() for e in value]})
