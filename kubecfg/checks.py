"""
Local validation of manifests, without contacting the cluster
"""

# Standard
from typing import Any, Iterable, List, NamedTuple, Optional
import re

# First Party
import alog

# Local
from .exceptions import MissingIdentityField
from .identity import Identity, identity

log = alog.use_channel("CHECK")

DNS_1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
DNS_1123_SUBDOMAIN = re.compile(
    r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"
)
QUALIFIED_NAME = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$")
API_VERSION = re.compile(
    r"^([a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*/)?"
    r"v[0-9]+((alpha|beta)[0-9]+)?$"
)
KIND = re.compile(r"^[A-Z][A-Za-z0-9]*$")

MAX_LABEL_LENGTH = 63
MAX_SUBDOMAIN_LENGTH = 253


class CheckIssue(NamedTuple):
    """A single problem found in a manifest"""

    identity: Optional[Identity]
    path: str
    message: str

    def __str__(self):
        where = str(self.identity) if self.identity else "<unknown>"
        return f"{where}: {self.path}: {self.message}"


def check_manifests(manifests: Iterable[dict]) -> List[CheckIssue]:
    """Validate the manifests of a desired set

    Args:
        manifests:  Iterable[dict]
            Normalized manifests

    Returns:
        issues:  List[CheckIssue]
            Every problem found, in manifest order. Empty if all is well.
    """
    issues = []
    count = 0
    for manifest in manifests:
        count += 1
        issues.extend(check_manifest(manifest))
    log.debug("Checked %d manifests, found %d issues", count, len(issues))
    return issues


def check_manifest(manifest: dict) -> List[CheckIssue]:
    """Validate a single manifest"""
    obj_id = _safe_identity(manifest)
    issues = []

    def issue(path: str, message: str):
        issues.append(CheckIssue(obj_id, path, message))

    api_version = manifest.get("apiVersion")
    if not isinstance(api_version, str) or not API_VERSION.fullmatch(api_version):
        issue("apiVersion", f"Invalid apiVersion {api_version!r}")

    kind = manifest.get("kind")
    if not isinstance(kind, str) or not KIND.fullmatch(kind):
        issue("kind", f"Invalid kind {kind!r}, expected CamelCase")

    metadata = manifest.get("metadata")
    if not isinstance(metadata, dict):
        issue("metadata", "metadata must be a mapping")
        return issues

    name = metadata.get("name")
    if not _is_subdomain(name):
        issue("metadata.name", f"Invalid name {name!r}, expected a DNS-1123 subdomain")

    namespace = metadata.get("namespace")
    if namespace is not None and not _is_label(namespace):
        issue(
            "metadata.namespace",
            f"Invalid namespace {namespace!r}, expected a DNS-1123 label",
        )

    labels = metadata.get("labels")
    if labels is not None:
        if not isinstance(labels, dict):
            issue("metadata.labels", "labels must be a mapping")
        else:
            for key, value in labels.items():
                if not _is_qualified_name(key):
                    issue(f"metadata.labels.{key}", "Invalid label key")
                if not isinstance(value, str):
                    issue(f"metadata.labels.{key}", "Label values must be strings")
                elif value and (
                    len(value) > MAX_LABEL_LENGTH or not QUALIFIED_NAME.fullmatch(value)
                ):
                    issue(f"metadata.labels.{key}", f"Invalid label value {value!r}")

    annotations = metadata.get("annotations")
    if annotations is not None:
        if not isinstance(annotations, dict):
            issue("metadata.annotations", "annotations must be a mapping")
        else:
            for key, value in annotations.items():
                if not _is_qualified_name(key):
                    issue(f"metadata.annotations.{key}", "Invalid annotation key")
                if not isinstance(value, str):
                    issue(
                        f"metadata.annotations.{key}",
                        "Annotation values must be strings",
                    )
    return issues


## Implementation ##############################################################


def _is_label(value: Any) -> bool:
    return (
        isinstance(value, str)
        and len(value) <= MAX_LABEL_LENGTH
        and bool(DNS_1123_LABEL.fullmatch(value))
    )


def _is_subdomain(value: Any) -> bool:
    return (
        isinstance(value, str)
        and len(value) <= MAX_SUBDOMAIN_LENGTH
        and bool(DNS_1123_SUBDOMAIN.fullmatch(value))
    )


def _is_qualified_name(key: Any) -> bool:
    """Label and annotation keys: an optional DNS subdomain prefix and a name"""
    if not isinstance(key, str):
        return False
    prefix, _, name = key.rpartition("/")
    if prefix and not _is_subdomain(prefix):
        return False
    return len(name) <= MAX_LABEL_LENGTH and bool(QUALIFIED_NAME.fullmatch(name))


def _safe_identity(manifest: dict) -> Optional[Identity]:
    try:
        return identity(manifest)
    except MissingIdentityField:
        return None
