"""
The Live State Fetcher is the read side of the engine: a single best-effort
lookup of an object's current server-side representation
"""

# Standard
from typing import Iterable, List, Optional, Tuple

# First Party
import alog

# Local
from .identity import Identity, identity
from .transport import TransportBase

log = alog.use_channel("FETCH")


class LiveStateFetcher:
    """Read interface over the transport. Transport errors propagate unchanged
    so that the caller decides whether to retry.
    """

    def __init__(self, transport: TransportBase):
        self.transport = transport

    def fetch(self, obj_id: Identity) -> Optional[dict]:
        """Fetch the live object for an identity

        Args:
            obj_id:  Identity
                The identity to look up

        Returns:
            live:  Optional[dict]
                The live object, or None when it does not exist (NotFound is a
                valid outcome meaning "this identity should be created")
        """
        live = self.transport.get(obj_id)
        log.debug3("Fetched [%s]: %s", obj_id, "found" if live else "not found")
        return live

    def list_pruning_candidates(
        self,
        kinds: Iterable[Tuple[str, str]],
        label_selector: str,
    ) -> List[dict]:
        """List every live object of the given (apiVersion, kind) pairs which
        carries the given label selector

        Args:
            kinds:  Iterable[Tuple[str, str]]
                The (apiVersion, kind) pairs to look at
            label_selector:  str
                Selector for the garbage-collect tag

        Returns:
            candidates:  List[dict]
                Live objects, de-duplicated by identity, in listing order
        """
        seen = set()
        candidates = []
        for api_version, kind in kinds:
            for live in self.transport.list(
                api_version, kind, label_selector=label_selector
            ):
                obj_id = identity(live)
                if obj_id not in seen:
                    seen.add(obj_id)
                    candidates.append(live)
        log.debug("Found %d pruning candidates", len(candidates))
        return candidates
