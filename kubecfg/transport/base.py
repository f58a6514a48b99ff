"""
This defines the base class for all transports: the narrow request/response
interface the reconciliation engine uses to talk to the cluster.
"""

# Standard
from typing import List, Optional
import abc

# Local
from ..identity import Identity


class TransportBase(abc.ABC):
    """
    Base class for transports. Every method performs a single best-effort call
    and raises a TransientTransportError or PermanentTransportError on failure.
    Implementations must be safe for concurrent use by the executor's worker
    pool.
    """

    @abc.abstractmethod
    def get(self, identity: Identity) -> Optional[dict]:
        """Fetch the current state of a single object

        Args:
            identity:  Identity
                The identity of the object to fetch

        Returns:
            current_state:  Optional[dict]
                The dict representation of the live object, or None if it does
                not exist
        """

    @abc.abstractmethod
    def create(self, manifest: dict) -> dict:
        """Create a new object

        Args:
            manifest:  dict
                The full manifest of the object to create

        Returns:
            created:  dict
                The object as stored by the server

        Raises:
            VersionConflictError: if the object already exists
        """

    @abc.abstractmethod
    def patch(
        self,
        identity: Identity,
        operations: List[dict],
        resource_version: Optional[str] = None,
    ) -> dict:
        """Apply an RFC 6902 JSON patch to an existing object

        Args:
            identity:  Identity
                The identity of the object to patch
            operations:  List[dict]
                The JSON patch operations
            resource_version:  Optional[str]
                If given, the patch only succeeds if the object is still at
                this resourceVersion

        Returns:
            patched:  dict
                The object as stored by the server after the patch

        Raises:
            VersionConflictError: if the resourceVersion precondition fails
        """

    @abc.abstractmethod
    def delete(self, identity: Identity) -> bool:
        """Delete an object

        Args:
            identity:  Identity
                The identity of the object to delete

        Returns:
            deleted:  bool
                True if the object existed and was deleted, False if it was
                already absent
        """

    @abc.abstractmethod
    def list(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[dict]:
        """List the objects of a kind, optionally filtered by namespace and
        label selector

        Returns:
            objects:  List[dict]
                The dict representations of all matching objects
        """
