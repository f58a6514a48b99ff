"""
Common utilities shared across the library
"""

# Standard
from typing import Any, Iterable
import copy

# Local
from . import constants

# Sentinel for missing dict values
__MISSING__ = "__MISSING__"

## Dicts #######################################################################


def nested_get(dct: dict, key: str, dflt=None) -> Any:
    """Helper to get values from a dict using 'foo.bar' key notation. Missing
    intermediate dicts yield the default.
    """
    parts = key.split(constants.NESTED_DICT_DELIM)
    for i, part in enumerate(parts[:-1]):
        dct = dct.get(part, __MISSING__)
        if dct is __MISSING__:
            return dflt
        if not isinstance(dct, dict):
            raise TypeError(
                f"Intermediate key {constants.NESTED_DICT_DELIM.join(parts[:i + 1])} is not a dict"
            )
    return dct.get(parts[-1], dflt)


def strip_fields(manifest: dict, metadata_fields: Iterable[str], fields: Iterable[str] = ()) -> dict:
    """Return a deep copy of the manifest without the given metadata and top
    level fields
    """
    manifest = copy.deepcopy(manifest)
    metadata = manifest.get("metadata")
    if isinstance(metadata, dict):
        for field in metadata_fields:
            metadata.pop(field, None)
    for field in fields:
        manifest.pop(field, None)
    return manifest
