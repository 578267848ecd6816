"""
Document Node
=============

Addressed tree element produced by the tree builder and walked by the
markup generator.

The persisted fields travel through the intermediate partition file in
camelCase; the generator-side fields (label, title, mode flags, cursor,
search terms, overload ids) exist only while a partition is rendered.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional
import re
import uuid as uuid_module

TEXT_FRAGMENT = "textfragment"

# dataclass attribute -> serialized key
_SERIALIZED_FIELDS = (
    ("uuid", "uuid"),
    ("name", "name"),
    ("id", "id"),
    ("anchor_id", "anchorId"),
    ("parent_anchor_id", "parentAnchorId"),
    ("customer_id", "customerId"),
    ("seclevel", "seclevel"),
    ("xmllevel", "xmllevel"),
    ("parent_id", "parentId"),
    ("subpart_id", "subpartId"),
    ("docpart", "docpart"),
    ("parent_node_name", "parentNodeName"),
    ("path", "path"),
    ("plaintext", "plaintext"),
    ("attributes", "attributes"),
)

_SEARCH_TERM_STRIP_RE = re.compile(r"['\",]")


def _new_uuid() -> str:
    return str(uuid_module.uuid4())


@dataclass
class Node:
    """
    One element (or text fragment) of a document partition.

    ``parent_anchor_id`` and ``parent_id`` are lookup keys only; a node
    never references its parent object.
    """

    name: str
    uuid: str = field(default_factory=_new_uuid)
    id: Optional[str] = None
    anchor_id: Optional[str] = None
    parent_anchor_id: Optional[str] = None
    customer_id: Optional[str] = None
    seclevel: int = -1
    xmllevel: int = -1
    parent_id: Optional[str] = None
    subpart_id: Optional[str] = None
    docpart: Optional[str] = None
    parent_node_name: Optional[str] = None
    path: str = ""
    plaintext: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List['Node'] = field(default_factory=list)

    # rendering state
    label: Optional[str] = None
    title: Optional[str] = None
    is_remark: bool = False
    is_boxedtext: bool = False
    is_normative: bool = True
    cursor: int = 0
    search_terms: List[str] = field(default_factory=list)
    overload_anchor_id: Optional[str] = None
    overload_customer_id: Optional[str] = None

    # -- construction ----------------------------------------------------

    def set_attributes(self, attributes: Dict[str, str]) -> None:
        self.attributes = attributes
        if attributes.get("id"):
            self.id = attributes["id"]

    def add_child(self, node: 'Node') -> None:
        self.children.append(node)

    def add_text(self, text: str) -> None:
        """Append text, separated from existing text by one space."""
        if self.plaintext and not self.plaintext.endswith(" "):
            self.plaintext += " "
        self.plaintext += text

    @property
    def is_text(self) -> bool:
        return self.name == TEXT_FRAGMENT

    # -- queries ---------------------------------------------------------

    def attr(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    def find_first_child(self, name: str) -> Optional['Node']:
        return next((c for c in self.children if c.name == name), None)

    def find_children(self, name: str) -> List['Node']:
        return [c for c in self.children if c.name == name]

    def iter_descendants(self) -> Iterator['Node']:
        """Depth-first pre-order walk below this node."""
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def find_recursively(self, name: str, depth: Optional[int] = None) -> Optional['Node']:
        """
        First descendant (or self) with the given name.

        Args:
            name: Node name to look for
            depth: Maximum number of levels to descend, unlimited when None
        """
        if self.name == name:
            return self
        if depth is not None and depth <= 0:
            return None
        for child in self.children:
            found = child.find_recursively(name, None if depth is None else depth - 1)
            if found is not None:
                return found
        return None

    def find_by_id(self, node_id: str) -> Optional['Node']:
        if self.id == node_id:
            return self
        for child in self.children:
            found = child.find_by_id(node_id)
            if found is not None:
                return found
        return None

    def find_where(self, predicate: Callable[['Node'], bool]) -> Optional['Node']:
        if predicate(self):
            return self
        return next((n for n in self.iter_descendants() if predicate(n)), None)

    def text_content(self) -> str:
        """Concatenated text of all text fragments below this node."""
        return " ".join(n.plaintext for n in self.iter_descendants() if n.is_text)

    # -- rendering helpers -----------------------------------------------

    def set_mode_from(self, other: 'Node') -> None:
        """Inherit the normative / remark / boxed flags of another node."""
        self.is_boxedtext = other.is_boxedtext
        self.is_normative = other.is_normative
        self.is_remark = other.is_remark

    def search_terms_csv(self) -> str:
        return ",".join(_SEARCH_TERM_STRIP_RE.sub("", term) for term in self.search_terms)

    def reset_rendering(self) -> None:
        self.label = None
        self.title = None
        self.search_terms = []

    def clone(self) -> 'Node':
        """Deep copy, keeping ids and rendering state."""
        copy = Node(name=self.name)
        for attr_name, _ in _SERIALIZED_FIELDS:
            setattr(copy, attr_name, getattr(self, attr_name))
        copy.attributes = dict(self.attributes)
        copy.label = self.label
        copy.title = self.title
        copy.is_remark = self.is_remark
        copy.is_boxedtext = self.is_boxedtext
        copy.is_normative = self.is_normative
        copy.cursor = self.cursor
        copy.search_terms = list(self.search_terms)
        copy.overload_anchor_id = self.overload_anchor_id
        copy.overload_customer_id = self.overload_customer_id
        copy.children = [c.clone() for c in self.children]
        return copy

    # -- serialization ---------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Intermediate form: persisted fields plus children, recursively."""
        data = {key: getattr(self, attr_name) for attr_name, key in _SERIALIZED_FIELDS}
        data["children"] = [c.to_dict() for c in self.children]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Node':
        node = cls(name=data["name"])
        for attr_name, key in _SERIALIZED_FIELDS:
            if key in data and data[key] is not None:
                setattr(node, attr_name, data[key])
        node.attributes = dict(data.get("attributes") or {})
        node.children = [cls.from_dict(c) for c in data.get("children") or []]
        return node

    def __repr__(self) -> str:
        return f"Node({self.name!r}, customer_id={self.customer_id!r}, anchor_id={self.anchor_id!r})"
