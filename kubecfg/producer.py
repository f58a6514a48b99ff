"""
The document producer turns YAML or JSON text into the opaque document tree
that the normalizer flattens
"""

# Standard
from typing import Any
import sys

# Third Party
import yaml

# First Party
import alog

# Local
from .exceptions import InputError

log = alog.use_channel("PRDCR")

# Path which reads from stdin
STDIN_PATH = "-"


def load_text(text: str, source: str = "<text>") -> Any:
    """Parse YAML (possibly multi-document) or JSON text

    Args:
        text:  str
            The document text
        source:  str
            Name of where the text came from, for error messages

    Returns:
        tree:  Any
            The single document, or a list of the documents if there are
            several. Empty documents are dropped.

    Raises:
        InputError: the text is not valid YAML/JSON
    """
    try:
        documents = [doc for doc in yaml.safe_load_all(text) if doc is not None]
    except yaml.YAMLError as err:
        raise InputError(f"Unable to parse {source}: {err}") from err
    log.debug2("Loaded %d documents from %s", len(documents), source)
    if len(documents) == 1:
        return documents[0]
    return documents


def load_file(path: str) -> Any:
    """Load the document tree from a file, or stdin for "-"

    Raises:
        InputError: the file cannot be read or parsed
    """
    if path == STDIN_PATH:
        return load_text(sys.stdin.read(), "<stdin>")
    try:
        with open(path, encoding="utf-8") as handle:
            text = handle.read()
    except OSError as err:
        raise InputError(f"Unable to read {path}: {err}") from err
    return load_text(text, path)
