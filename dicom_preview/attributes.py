"""
attributes.py - The attribute tree and its wire contract.

An attribute value is a tagged union on the wire:

    {"type": "String",   "content": "Doe^John"}
    {"type": "Sequence", "content": [<attribute>, <attribute>, ...]}

Sequences nest arbitrarily deep, so both decode and encode walk the tree
with an explicit stack of iterators instead of recursing.  Output order is
the same depth-first order a recursive walk would produce.

``depth`` is copied from the producer and never recomputed here; nesting is
carried by the Sequence structure itself.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Union

from dicom_preview.errors import DecodingError, MalformedValueTag
from dicom_preview.fields import expect_list, expect_object, index_path, join_path, require

logger = logging.getLogger(__name__)

LEAF_TYPE = "String"
SEQUENCE_TYPE = "Sequence"


@dataclass
class Leaf:
    """A plain textual value."""
    text: str


@dataclass
class Sequence:
    """A value holding nested attributes."""
    items: list["Attribute"] = field(default_factory=list)


AttributeValue = Union[Leaf, Sequence]


@dataclass
class Attribute:
    """One tagged, named data element."""
    depth: int
    tag: str
    name: str
    vr: str
    value: AttributeValue

    @property
    def is_sequence(self) -> bool:
        return isinstance(self.value, Sequence)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _decode_header(raw: Any, path: str) -> tuple[Attribute, Union[list, None]]:
    """
    Decode one attribute without descending into it.

    Returns the attribute and, for sequences, the raw list of children still
    to be decoded into ``attribute.value.items``.
    """
    data = expect_object(raw, path)
    depth = require(data, "depth", int, path)
    if depth < 0:
        raise DecodingError.type_mismatch("non-negative Int", join_path(path, "depth"))
    tag = require(data, "tag", str, path)
    name = require(data, "name", str, path)
    vr = require(data, "vr", str, path)

    value_path = join_path(path, "value")
    value = require(data, "value", dict, path)
    kind = require(value, "type", str, value_path)

    if kind == LEAF_TYPE:
        text = require(value, "content", str, value_path)
        return Attribute(depth, tag, name, vr, Leaf(text)), None
    if kind == SEQUENCE_TYPE:
        children = require(value, "content", list, value_path)
        return Attribute(depth, tag, name, vr, Sequence()), children
    raise MalformedValueTag(kind, join_path(value_path, "type"))


def decode_attributes(raw: Any, path: str = "attributes") -> list[Attribute]:
    """
    Decode a JSON list of attributes into an attribute tree.

    Raises
    ------
    DecodingError
        On any missing field or type mismatch.
    MalformedValueTag
        When a value discriminator is neither "String" nor "Sequence".
    """
    roots: list[Attribute] = []
    stack = [(enumerate(expect_list(raw, path)), path, roots)]

    while stack:
        items, list_path, out = stack[-1]
        entry = next(items, None)
        if entry is None:
            stack.pop()
            continue

        index, raw_attribute = entry
        item_path = index_path(list_path, index)
        attribute, children = _decode_header(raw_attribute, item_path)
        out.append(attribute)

        if children is not None:
            content_path = join_path(item_path, "value.content")
            stack.append((enumerate(children), content_path, attribute.value.items))

    logger.debug("Decoded %d top-level attributes from %s", len(roots), path)
    return roots


def decode_value(raw: Any, path: str = "value") -> AttributeValue:
    """Decode a single wire value (a leaf or a sequence of attributes)."""
    value = expect_object(raw, path)
    kind = require(value, "type", str, path)
    if kind == LEAF_TYPE:
        return Leaf(require(value, "content", str, path))
    if kind == SEQUENCE_TYPE:
        content_path = join_path(path, "content")
        return Sequence(decode_attributes(require(value, "content", list, path), content_path))
    raise MalformedValueTag(kind, join_path(path, "type"))


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def _encode_header(attribute: Attribute) -> dict:
    if isinstance(attribute.value, Leaf):
        value = {"type": LEAF_TYPE, "content": attribute.value.text}
    else:
        value = {"type": SEQUENCE_TYPE, "content": []}
    return {
        "depth": attribute.depth,
        "tag": attribute.tag,
        "name": attribute.name,
        "vr": attribute.vr,
        "value": value,
    }


def encode_attributes(attributes: list[Attribute]) -> list[dict]:
    """Encode an attribute tree back into its wire shape."""
    roots: list[dict] = []
    stack = [(iter(attributes), roots)]

    while stack:
        items, out = stack[-1]
        attribute = next(items, None)
        if attribute is None:
            stack.pop()
            continue

        encoded = _encode_header(attribute)
        out.append(encoded)
        if isinstance(attribute.value, Sequence):
            stack.append((iter(attribute.value.items), encoded["value"]["content"]))

    return roots


def encode_value(value: AttributeValue) -> dict:
    if isinstance(value, Leaf):
        return {"type": LEAF_TYPE, "content": value.text}
    return {"type": SEQUENCE_TYPE, "content": encode_attributes(value.items)}


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------

def walk(attributes: list[Attribute]) -> Iterator[Attribute]:
    """Yield every attribute in the tree, depth-first, parents before children."""
    stack = [iter(attributes)]
    while stack:
        attribute = next(stack[-1], None)
        if attribute is None:
            stack.pop()
            continue
        yield attribute
        if isinstance(attribute.value, Sequence):
            stack.append(iter(attribute.value.items))
