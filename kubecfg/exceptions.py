"""
This module implements custom exceptions
"""

## Base Error ##################################################################


class KubecfgError(Exception):
    """Base class for all kubecfg exceptions"""

    def __init__(self, message: str, is_fatal_error: bool):
        """Construct with a flag indicating whether this is a fatal error. This
        will be a static property of all children.
        """
        super().__init__(message)
        self._is_fatal_error = is_fatal_error

    @property
    def is_fatal_error(self):
        """Property indicating whether or not this error should abort the whole
        reconciliation rather than a single identity
        """
        return self._is_fatal_error


## Fatal Errors ################################################################


class KubecfgFatalError(KubecfgError):
    """A KubecfgFatalError aborts the whole run before (or instead of) touching
    the cluster
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=True)


class InputError(KubecfgFatalError):
    """Exception caused by a malformed desired-state document"""


class MissingIdentityField(InputError):
    """A manifest or live object lacks one of the fields that make up its
    identity
    """

    def __init__(self, field: str, message: str = ""):
        self.field = field
        super().__init__(message or f"Missing identity field: {field}")


class DuplicateIdentity(InputError):
    """Two manifests of one desired set resolve to the same identity"""

    def __init__(self, identity, message: str = ""):
        self.identity = identity
        super().__init__(message or f"Duplicate resource: {identity}")


class MalformedManifest(InputError):
    """A node of the document tree is not resource-shaped where a resource is
    expected
    """

    def __init__(self, path: str, message: str = ""):
        self.path = path
        super().__init__(message or f"Malformed manifest at {path or '<root>'}")


class ConfigError(KubecfgFatalError):
    """Exception caused during usage of user-provided configuration"""


class UnresolvableOrdering(ConfigError):
    """The configured kind dependencies contain a cycle"""


class ClusterError(KubecfgFatalError):
    """Exception caused when a cluster operation fails in a way that makes the
    rest of the run meaningless (e.g. no client can be constructed)
    """


## Expected Errors #############################################################


class KubecfgExpectedError(KubecfgError):
    """A KubecfgExpectedError is local to a single identity. It is recorded in
    the execution report and never aborts sibling operations.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=False)


class TransportError(KubecfgExpectedError):
    """Base for all failures raised by a transport"""

    is_transient = False

    def __init__(self, message: str = "", status=None):
        self.status = status
        super().__init__(message)


class TransientTransportError(TransportError):
    """Network timeouts, throttling and 5xx responses. These are retried."""

    is_transient = True


class VersionConflictError(TransientTransportError):
    """The server rejected a write because the object changed since it was
    read (or already exists on create). Retried after a re-fetch and re-diff.
    """


class PermanentTransportError(TransportError):
    """Validation rejections, permission denials and other failures that will
    not resolve by retrying
    """


class ConflictError(KubecfgExpectedError):
    """A live field was modified outside of kubecfg since the last apply and
    the desired manifest changes it again
    """

    def __init__(self, message: str = "", identity=None, path=None):
        self.identity = identity
        self.path = path
        super().__init__(message)


class DependencySkipped(KubecfgExpectedError):
    """An operation was not attempted because its prerequisite failed"""


class WaitTimeout(KubecfgExpectedError):
    """An object did not become ready before the deadline"""


## Assertions ##################################################################


def assert_input(condition: bool, message: str = ""):
    """Replacement for assert() which will throw an InputError. This should be
    used when validating the desired-state document.
    """
    if not condition:
        raise InputError(message)


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError. This should be
    used when validating user-provided configuration.
    """
    if not condition:
        raise ConfigError(message)
