"""XFA form data extraction and cleaning.

An XFA form stores its field values as an XML packet set inside the PDF,
independent of the rendered pages. This module turns the raw XML streams
into one of three report formats:

``raw``
    the concatenated streams, verbatim;
``full``
    the whole XML tree reshaped as JSON, nothing dropped;
``clean``
    the form's data section pruned of system packets, option lists and
    empty nodes, then flattened into an ordered ``path -> value`` mapping.

Pruning heuristics live in :class:`PruneRules` so callers can inspect and
override them.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import xml.etree.ElementTree as ET

from .exceptions import ConfigError, XfaParseError
from .types import CleanedFormRecord, XfaMode, XfaResult

LOGGER = logging.getLogger(__name__)

XFA_DATA_NS = "http://www.xfa.org/schema/xfa-data/1.0/"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

VALUE_KEY = "_value"
ATTRIBUTES_KEY = "_attributes"

_XML_DECL_RE = re.compile(rb"<\?xml[^>]*\?>")
_BOM = b"\xef\xbb\xbf"


@dataclass(frozen=True)
class PruneRules:
    """
    Heuristic tables used by the ``clean`` mode.

    Attributes:
        system_names: Element names whose whole subtree is bookkeeping
        system_prefixes: Name prefixes marking bookkeeping elements
        lookup_patterns: Case-insensitive name fragments marking option lists
        lookup_min_items: Minimum number of entries before a list counts as an option list
        ignored_attribute_namespaces: Attribute namespaces that carry no form data
        path_delimiter: Separator between path segments in flattened keys
    """
    system_names: frozenset = frozenset({
        "template",
        "config",
        "connectionSet",
        "localeSet",
        "sourceSet",
        "stylesheet",
        "xmpmeta",
        "xdc",
        "xfdf",
        "dataDescription",
        "datamodel",
        "schema",
        "script",
        "variables",
        "connect",
        "bind",
    })
    system_prefixes: Tuple[str, ...] = (
        "FS", "fs", "_", "TEMPLATE", "QUERY", "TRANSFORMATION", "template", "config", "xdp",
    )
    lookup_patterns: Tuple[str, ...] = (
        "list", "option", "choice", "lookup", "dropdown", "picklist", "enum",
    )
    lookup_min_items: int = 10
    ignored_attribute_namespaces: frozenset = frozenset({XFA_DATA_NS, XSI_NS})
    path_delimiter: str = "."

    def is_system_node(self, name: str) -> bool:
        return name in self.system_names or name.startswith(self.system_prefixes)

    def is_lookup_name(self, name: str) -> bool:
        lowered = name.lower()
        return any(pattern.lower() in lowered for pattern in self.lookup_patterns)

    def field_name(self, list_name: str) -> Optional[str]:
        """Name of the field an option list serves: ``CountryList`` -> ``Country``."""
        lowered = list_name.lower()
        positions = [lowered.find(pattern.lower()) for pattern in self.lookup_patterns]
        positions = [position for position in positions if position > 0]
        if not positions:
            return None
        return list_name[: min(positions)].rstrip("_-.") or None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: Optional["PruneRules"] = None) -> "PruneRules":
        """Build rules from ``data``, falling back to ``base`` for missing keys."""
        base = base or DEFAULT_PRUNE_RULES
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown prune rule keys: {', '.join(sorted(unknown))}")

        def _strings(key: str) -> Tuple[str, ...]:
            value = data.get(key)
            if value is None:
                return tuple(getattr(base, key))
            if isinstance(value, str) or not isinstance(value, Iterable):
                raise ConfigError(f"Prune rule '{key}' must be a list of strings.")
            return tuple(str(item) for item in value)

        min_items = data.get("lookup_min_items", base.lookup_min_items)
        if not isinstance(min_items, int) or isinstance(min_items, bool) or min_items < 1:
            raise ConfigError("Prune rule 'lookup_min_items' must be a positive integer.")

        return cls(
            system_names=frozenset(_strings("system_names")),
            system_prefixes=_strings("system_prefixes"),
            lookup_patterns=_strings("lookup_patterns"),
            lookup_min_items=min_items,
            ignored_attribute_namespaces=frozenset(_strings("ignored_attribute_namespaces")),
            path_delimiter=str(data.get("path_delimiter", base.path_delimiter)),
        )

    @classmethod
    def from_json_file(cls, path: str | Path) -> "PruneRules":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Unable to read prune rules from {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Prune rules in {path} must be a JSON object.")
        return cls.from_mapping(data)


DEFAULT_PRUNE_RULES = PruneRules()


@dataclass
class _Node:
    name: str
    text: str = ""
    attributes: List[Tuple[str, str]] = field(default_factory=list)
    children: List["_Node"] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


# -- XML helpers -------------------------------------------------------------


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def _namespace(tag: str) -> str:
    return tag[1:].split("}", 1)[0] if tag.startswith("{") else ""


def _element_children(element: ET.Element) -> Iterable[ET.Element]:
    return (child for child in element if isinstance(child.tag, str))


def _direct_text(element: ET.Element) -> str:
    """Text owned by ``element`` itself, including text between its children."""
    pieces = [element.text or ""]
    pieces.extend(child.tail or "" for child in element)
    return " ".join(piece.strip() for piece in pieces if piece and piece.strip())


def join_blob(blob: Sequence[bytes]) -> bytes:
    """Concatenate XFA streams into one parseable document."""
    parts: List[bytes] = []
    for index, chunk in enumerate(blob):
        data = bytes(chunk)
        if index == 0:
            data = data.lstrip().lstrip(_BOM).lstrip()
            head = _XML_DECL_RE.match(data)
            if head:
                data = data[: head.end()] + _XML_DECL_RE.sub(b"", data[head.end():])
            else:
                data = _XML_DECL_RE.sub(b"", data)
        else:
            data = _XML_DECL_RE.sub(b"", data.replace(_BOM, b""))
        parts.append(data)
    return b"".join(parts)


_ENCODING_DECL_RE = re.compile(rb"""^\s*<\?xml[^>]*?encoding\s*=\s*["']([A-Za-z0-9._-]+)["']""")
_BOMS = (
    (b"\xef\xbb\xbf", "utf-8-sig"),
    (b"\xff\xfe", "utf-16"),
    (b"\xfe\xff", "utf-16"),
)
FALLBACK_ENCODING = "latin-1"


def _chunk_encoding(data: bytes) -> Optional[str]:
    for bom, encoding in _BOMS:
        if data.startswith(bom):
            return encoding
    match = _ENCODING_DECL_RE.match(data)
    return match.group(1).decode("ascii") if match else None


def decode_raw(blob: Sequence[bytes]) -> str:
    """
    Decode XFA streams as text without altering them.

    Each stream uses its own byte-order mark or XML declaration, else the
    encoding of the stream before it, else UTF-8. Bytes that do not decode
    in that encoding fall back to latin-1, which maps every byte.
    """
    pieces: List[str] = []
    encoding = "utf-8"
    for chunk in blob:
        data = bytes(chunk)
        encoding = _chunk_encoding(data) or encoding
        try:
            pieces.append(data.decode(encoding))
        except (LookupError, UnicodeDecodeError):
            LOGGER.warning("XFA stream is not valid %s; decoding as %s", encoding, FALLBACK_ENCODING)
            pieces.append(data.decode(FALLBACK_ENCODING))
    return "".join(pieces)


def parse_xfa(blob: Sequence[bytes]) -> ET.Element:
    """Parse the concatenated streams, raising :class:`XfaParseError` on malformed XML."""
    data = join_blob(blob)
    try:
        return ET.fromstring(data)
    except ET.ParseError as exc:
        raise XfaParseError(f"XFA XML parse error: {exc}") from exc


def _is_blank(blob: Optional[Sequence[bytes]]) -> bool:
    return not blob or all(not bytes(chunk).strip() for chunk in blob)


# -- full mode ---------------------------------------------------------------


def _merge_into(mapping: Dict[str, Any], key: str, value: Any) -> None:
    if key not in mapping:
        mapping[key] = value
    elif isinstance(mapping[key], list):
        mapping[key].append(value)
    else:
        mapping[key] = [mapping[key], value]


def element_to_json(element: ET.Element) -> Any:
    """Reshape ``element`` into JSON-compatible data without dropping anything."""
    result: Dict[str, Any] = {}

    attributes: Dict[str, str] = {}
    for key, value in element.attrib.items():
        name = _local_name(key)
        attributes[key if name in attributes else name] = value
    if attributes:
        result[ATTRIBUTES_KEY] = attributes

    text = _direct_text(element)
    if text:
        result[VALUE_KEY] = text

    for child in _element_children(element):
        _merge_into(result, _local_name(child.tag), element_to_json(child))

    if not result:
        return ""
    if list(result) == [VALUE_KEY]:
        return text
    return result


def xfa_to_json(blob: Sequence[bytes]) -> Dict[str, Any]:
    root = parse_xfa(blob)
    return {_local_name(root.tag): element_to_json(root)}


# -- clean mode --------------------------------------------------------------


def find_data_section(root: ET.Element) -> ET.Element:
    """Locate the form's data section, falling back to ``root``."""
    for element in root.iter(f"{{{XFA_DATA_NS}}}data"):
        return element

    for parent in root.iter():
        if not isinstance(parent.tag, str) or _local_name(parent.tag) != "datasets":
            continue
        for child in _element_children(parent):
            if _local_name(child.tag) == "data":
                return child

    for element in root.iter():
        if isinstance(element.tag, str) and _local_name(element.tag) == "data":
            return element
    return root


def _is_option_list(node: _Node, rules: PruneRules) -> bool:
    if len(node.children) < rules.lookup_min_items:
        return False
    item_names = {child.name for child in node.children}
    if len(item_names) != 1:
        return False
    if not all(all(grandchild.is_leaf for grandchild in child.children) for child in node.children):
        return False
    return rules.is_lookup_name(node.name) or rules.is_lookup_name(next(iter(item_names)))


def _prune_option_lists(text: str, children: List[_Node], rules: PruneRules) -> List[_Node]:
    candidates = {id(child): child for child in children if _is_option_list(child, rules)}
    if not candidates:
        return children
    selected = {
        child.name.lower()
        for child in children
        if id(child) not in candidates and child.is_leaf and child.text
    }

    dropped = set()
    for key, candidate in candidates.items():
        field_name = rules.field_name(candidate.name)
        # the parent's own value or the paired field (Country for CountryList) is the selection
        if text or (field_name is not None and field_name.lower() in selected):
            LOGGER.debug("Dropping option list '%s' (%d entries)", candidate.name, len(candidate.children))
            dropped.add(key)
    return [child for child in children if id(child) not in dropped]


def _clean_children(element: ET.Element, rules: PruneRules) -> Tuple[str, List[_Node]]:
    text = _direct_text(element)
    children = [
        node
        for node in (_clean_element(child, rules) for child in _element_children(element))
        if node is not None
    ]
    return text, _prune_option_lists(text, children, rules)


def _clean_element(element: ET.Element, rules: PruneRules) -> Optional[_Node]:
    name = _local_name(element.tag)
    if rules.is_system_node(name):
        return None

    text, children = _clean_children(element, rules)
    attributes = [
        (_local_name(key), value)
        for key, value in element.attrib.items()
        if _namespace(key) not in rules.ignored_attribute_namespaces
    ]
    if not text and not attributes and not children:
        return None
    return _Node(name=name, text=text, attributes=attributes, children=children)


def _store(record: CleanedFormRecord, key: str, value: str) -> None:
    if key not in record:
        record[key] = value
        return
    suffix = 2
    while f"{key}#{suffix}" in record:
        suffix += 1
    record[f"{key}#{suffix}"] = value


def _flatten(nodes: List[_Node], prefix: str, record: CleanedFormRecord, rules: PruneRules) -> None:
    counts = Counter(node.name for node in nodes)
    positions: Counter = Counter()
    for node in nodes:
        segment = node.name
        if counts[node.name] > 1:
            segment = f"{node.name}[{positions[node.name]}]"
            positions[node.name] += 1
        path = f"{prefix}{rules.path_delimiter}{segment}" if prefix else segment

        if node.text:
            _store(record, path, node.text)
        for attribute, value in node.attributes:
            _store(record, f"{path}@{attribute}", value)
        _flatten(node.children, path, record, rules)


def clean_form_data(blob: Sequence[bytes], rules: PruneRules = DEFAULT_PRUNE_RULES) -> CleanedFormRecord:
    """Parse, prune and flatten XFA streams into an ordered ``path -> value`` record."""
    root = parse_xfa(blob)
    data_section = find_data_section(root)
    _, nodes = _clean_children(data_section, rules)

    record: CleanedFormRecord = {}
    _flatten(nodes, "", record, rules)
    return record


def serialize(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def transform_xfa(
    blob: Optional[Sequence[bytes]],
    mode: XfaMode,
    rules: PruneRules = DEFAULT_PRUNE_RULES,
) -> XfaResult:
    """
    Turn raw XFA streams into the report for ``mode``.

    Returns :meth:`XfaResult.absent` when ``mode`` is ``off`` or the blob
    holds no data.

    Raises:
        XfaParseError: If the XML is malformed (``full`` and ``clean`` only).
    """
    if mode is XfaMode.OFF or _is_blank(blob):
        return XfaResult.absent()

    if mode is XfaMode.RAW:
        payload = decode_raw(blob)
        return XfaResult(present=True, mode=mode, payload=payload)

    if mode is XfaMode.FULL:
        return XfaResult(present=True, mode=mode, payload=serialize(xfa_to_json(blob)))

    record = clean_form_data(blob, rules)
    LOGGER.info("Cleaned XFA form data: %d entries", len(record))
    return XfaResult(present=True, mode=mode, payload=serialize(record), record=record)


__all__ = [
    "DEFAULT_PRUNE_RULES",
    "PruneRules",
    "XFA_DATA_NS",
    "clean_form_data",
    "decode_raw",
    "element_to_json",
    "find_data_section",
    "join_blob",
    "parse_xfa",
    "serialize",
    "transform_xfa",
    "xfa_to_json",
]
