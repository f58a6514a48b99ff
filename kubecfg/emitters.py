"""
Display formatting: JSON and YAML emitters and the human readable structural
diff used by the diff command
"""

# Standard
from enum import Enum
from typing import Any, List, NamedTuple, Optional, TextIO
import json

# Third Party
import jsonpatch
import yaml

# Local
from .constants import (
    LAST_APPLIED_CONFIG_ANNOTATION,
    SERVER_OWNED_FIELDS,
    SERVER_OWNED_METADATA,
)
from .diff import DiffAction, DiffResult
from .utils import strip_fields

## Output Formats ##############################################################


class OutputFormat(Enum):
    JSON = "json"
    YAML = "yaml"

    @classmethod
    def from_str(cls, name: str) -> "OutputFormat":
        """Parse a format name

        Raises:
            ValueError: if the name is not a known format
        """
        try:
            return cls(name)
        except ValueError:
            raise ValueError(
                f"Unknown output format {name!r}. Choose from {cls.variants()}"
            ) from None

    @classmethod
    def variants(cls) -> List[str]:
        return [fmt.value for fmt in cls]

    def __str__(self):
        return self.value


def emit(content: Any, stream: TextIO, fmt: OutputFormat = OutputFormat.JSON):
    """Write content to the stream in the given format"""
    if fmt == OutputFormat.JSON:
        json.dump(content, stream, indent=4)
        stream.write("\n")
    elif fmt == OutputFormat.YAML:
        if isinstance(content, list):
            yaml.safe_dump_all(
                content, stream, default_flow_style=False, sort_keys=False
            )
        else:
            yaml.safe_dump(content, stream, default_flow_style=False, sort_keys=False)
    else:
        raise ValueError(f"Unsupported output format {fmt}")


## Structural Diff #############################################################


class DiffLine(NamedTuple):
    """One line of a structural diff

    Attributes:
        marker:  str
            "-" (only in a), "+" (only in b) or " " (context)
        depth:  int
            Indentation depth
        text:  str
            A key or index followed by ":" or a JSON leaf value
    """

    marker: str
    depth: int
    text: str

    def __str__(self):
        return f"{self.marker} {'  ' * self.depth}{self.text}"


def diff_walk(a: Any, b: Any, depth: int = 0) -> List[DiffLine]:
    """Walk two JSON-like trees and produce the lines of their difference.
    Keys are visited in sorted order. Lists are compared by index.
    """
    lines = []
    if isinstance(a, list) and isinstance(b, list):
        for i, (a_item, b_item) in enumerate(zip(a, b)):
            sub_lines = diff_walk(a_item, b_item, depth + 1)
            if sub_lines:
                lines.append(DiffLine(" ", depth, f"{i}:"))
                lines.extend(sub_lines)
        for i in range(len(b), len(a)):
            lines.append(DiffLine("-", depth, f"{i}:"))
            lines.append(DiffLine("-", depth + 1, _leaf(a[i])))
        for i in range(len(a), len(b)):
            lines.append(DiffLine("+", depth, f"{i}:"))
            lines.append(DiffLine("+", depth + 1, _leaf(b[i])))
    elif isinstance(a, dict) and isinstance(b, dict):
        for key in sorted(set(a) | set(b)):
            if key not in a:
                lines.append(DiffLine("+", depth, f"{key}:"))
                lines.append(DiffLine("+", depth + 1, _leaf(b[key])))
            elif key not in b:
                lines.append(DiffLine("-", depth, f"{key}:"))
                lines.append(DiffLine("-", depth + 1, _leaf(a[key])))
            else:
                sub_lines = diff_walk(a[key], b[key], depth + 1)
                if sub_lines:
                    lines.append(DiffLine(" ", depth, f"{key}:"))
                    lines.extend(sub_lines)
    elif a != b:
        lines.append(DiffLine("-", depth, _leaf(a)))
        lines.append(DiffLine("+", depth, _leaf(b)))
    return lines


def render_diff(result: DiffResult, live: Optional[dict] = None) -> str:
    """Render a diff result for humans

    Args:
        result:  DiffResult
            The result to render
        live:  Optional[dict]
            The live object the result was computed against

    Returns:
        text:  str
            A header line naming the action followed by the structural diff
            between the live object and what it would become
    """
    header = f"--- {result.identity} ({result.action.value})"
    if result.action == DiffAction.NOOP:
        return header
    if result.action == DiffAction.CONFLICT:
        return f"{header}\n! {result.reason}"

    before = _display_form(live) if live is not None else {}
    if result.action == DiffAction.CREATE:
        after = _display_form(result.manifest)
    elif result.action == DiffAction.DELETE:
        after = {}
    else:
        after = _display_form(jsonpatch.apply_patch(live, list(result.operations)))
    return "\n".join([header] + [str(line) for line in diff_walk(before, after)])


## Implementation ##############################################################


def _leaf(value: Any) -> str:
    return json.dumps(value, sort_keys=True)


def _display_form(obj: dict) -> dict:
    """Drop the fields which are noise to a human: server-owned fields and
    the last-applied annotation
    """
    obj = strip_fields(obj, SERVER_OWNED_METADATA, SERVER_OWNED_FIELDS)
    annotations = obj.get("metadata", {}).get("annotations")
    if isinstance(annotations, dict):
        annotations.pop(LAST_APPLIED_CONFIG_ANNOTATION, None)
        if not annotations:
            del obj["metadata"]["annotations"]
    return obj
