"""
JSON-backed host documents.

Loads a host model and its linked models from a JSON file and exposes them
through the same API surface the sync uses inside the host application
(FilteredElementCollector, StorageType, Transaction, ...). `JsonDB` plays
the role of the Autodesk.Revit.DB namespace.

File format::

    {
      "title": "Host",
      "elements": [
        {"unique_id": "u1", "id": 1001,
         "parameters": {"Mark": {"storage": "String", "value": "101"}}}
      ],
      "links": [
        {"name": "Arch.rvt", "unique_id": "l1", "id": 9001,
         "document": {"title": "Arch", "elements": []}}
      ]
    }

A parameter with `"value": null` exists but has no value. `"read_only": true`
marks a parameter that rejects writes. A link with `"document": null` is
not loaded. Elements with `"is_type": true` are element types.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union
import copy
import json
import logging

logger = logging.getLogger("paramsync.json")


class StorageType(Enum):
    # The host enum also has a `None` member, which is not a valid Python name.
    Unknown = "None"
    String = "String"
    Integer = "Integer"
    Double = "Double"
    ElementId = "ElementId"


class TransactionStatus(Enum):
    Uninitialized = 0
    Started = 1
    RolledBack = 2
    Committed = 3
    Pending = 4
    Error = 5


class ElementId:
    """Numeric element id."""

    def __init__(self, value: int):
        self.Value = int(value)

    @property
    def IntegerValue(self) -> int:
        return self.Value

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ElementId) and other.Value == self.Value

    def __hash__(self) -> int:
        return hash(self.Value)

    def __str__(self) -> str:
        return str(self.Value)

    def __repr__(self) -> str:
        return f"ElementId({self.Value})"


class Parameter:
    """One named parameter on an element."""

    def __init__(
        self,
        element: "Element",
        name: str,
        storage: StorageType,
        value: Any = None,
        read_only: bool = False,
    ):
        self.element = element
        self.name = name
        self.StorageType = storage
        self.IsReadOnly = read_only
        self._value = value

    @property
    def HasValue(self) -> bool:
        return self._value is not None

    @property
    def raw_value(self) -> Any:
        """Stored value as it appears in the JSON file."""
        return self._value

    def AsString(self) -> Optional[str]:
        if self.StorageType != StorageType.String:
            return None
        return self._value

    def AsInteger(self) -> int:
        if self.StorageType != StorageType.Integer or self._value is None:
            return 0
        return int(self._value)

    def AsDouble(self) -> float:
        if self.StorageType != StorageType.Double or self._value is None:
            return 0.0
        return float(self._value)

    def AsElementId(self) -> ElementId:
        if self.StorageType != StorageType.ElementId or self._value is None:
            return ElementId(-1)
        return ElementId(self._value)

    def Set(self, value: Any) -> bool:
        """Store a native value; raises like the host on misuse."""
        self.element.document._require_transaction()
        if self.IsReadOnly:
            raise RuntimeError(f"Parameter '{self.name}' is read-only")

        if self.StorageType == StorageType.String and isinstance(value, str):
            self._value = value
        elif self.StorageType == StorageType.Integer and type(value) is int:
            self._value = value
        elif self.StorageType == StorageType.Double and type(value) in (int, float):
            self._value = float(value)
        elif self.StorageType == StorageType.ElementId and isinstance(value, ElementId):
            self._value = value.Value
        else:
            raise TypeError(
                f"Cannot set {type(value).__name__} on {self.StorageType.value} "
                f"parameter '{self.name}'"
            )
        return True

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"storage": self.StorageType.value, "value": self.raw_value}
        if self.IsReadOnly:
            data["read_only"] = True
        return data


class Element:
    """A model element with a stable UniqueId and named parameters."""

    def __init__(
        self,
        document: "Document",
        unique_id: str,
        element_id: int,
        is_type: bool = False,
    ):
        self.document = document
        self.UniqueId = unique_id
        self.Id = ElementId(element_id)
        self.is_element_type = is_type
        self._parameters: Dict[str, Parameter] = {}

    @property
    def Parameters(self) -> List[Parameter]:
        return list(self._parameters.values())

    def LookupParameter(self, name: str) -> Optional[Parameter]:
        return self._parameters.get(name)

    def add_parameter(
        self,
        name: str,
        storage: Union[StorageType, str],
        value: Any = None,
        read_only: bool = False,
    ) -> Parameter:
        param = Parameter(self, name, StorageType(storage), value, read_only)
        self._parameters[name] = param
        return param

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "unique_id": self.UniqueId,
            "id": self.Id.Value,
            "parameters": {
                name: param.to_dict() for name, param in self._parameters.items()
            },
        }
        if self.is_element_type:
            data["is_type"] = True
        return data


class RevitLinkInstance(Element):
    """An element that references another document."""

    def __init__(
        self,
        document: "Document",
        name: str,
        unique_id: str,
        element_id: int,
        linked_document: Optional["Document"] = None,
    ):
        super().__init__(document, unique_id, element_id)
        self.Name = name
        self._linked_document = linked_document

    def GetLinkDocument(self) -> Optional["Document"]:
        return self._linked_document


class Document:
    """An in-memory model with single-writer transaction semantics."""

    def __init__(self, title: str = ""):
        self.Title = title
        self.elements: List[Element] = []
        self.links: List[RevitLinkInstance] = []
        self.fail_commit = False
        self._open_transaction: Optional["Transaction"] = None
        self._saved_values: Optional[Dict[int, Any]] = None

    @property
    def IsModifiable(self) -> bool:
        return self._open_transaction is not None

    def all_elements(self) -> List[Element]:
        return list(self.elements) + list(self.links)

    def GetElement(self, key: Union[str, ElementId]) -> Optional[Element]:
        for element in self.all_elements():
            if isinstance(key, ElementId):
                if element.Id == key:
                    return element
            elif element.UniqueId == key:
                return element
        return None

    def add_element(
        self, unique_id: str, element_id: int, is_type: bool = False
    ) -> Element:
        element = Element(self, unique_id, element_id, is_type=is_type)
        self.elements.append(element)
        return element

    def add_link(
        self,
        name: str,
        linked_document: Optional["Document"],
        unique_id: str = "",
        element_id: int = 0,
    ) -> RevitLinkInstance:
        link = RevitLinkInstance(
            self,
            name,
            unique_id or f"link-{len(self.links) + 1}",
            element_id or 900000 + len(self.links) + 1,
            linked_document,
        )
        self.links.append(link)
        return link

    # =========================================================================
    # Transactions
    # =========================================================================

    def _require_transaction(self) -> None:
        if self._open_transaction is None:
            raise RuntimeError(
                f"Attempt to modify '{self.Title}' outside of a transaction"
            )

    def _begin(self, transaction: "Transaction") -> None:
        if self._open_transaction is not None:
            raise RuntimeError("A transaction is already open on this document")
        self._open_transaction = transaction
        self._saved_values = {
            id(param): copy.deepcopy(param._value)
            for element in self.all_elements()
            for param in element.Parameters
        }

    def _end(self, keep: bool) -> None:
        if not keep and self._saved_values is not None:
            for element in self.all_elements():
                for param in element.Parameters:
                    if id(param) in self._saved_values:
                        param._value = self._saved_values[id(param)]
        self._open_transaction = None
        self._saved_values = None

    # =========================================================================
    # Serialization
    # =========================================================================

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        doc = cls(title=data.get("title", ""))
        for item in data.get("elements", []):
            element = doc.add_element(
                item["unique_id"],
                item.get("id", len(doc.elements) + 1),
                is_type=bool(item.get("is_type", False)),
            )
            for name, spec in item.get("parameters", {}).items():
                element.add_parameter(
                    name,
                    spec.get("storage", "String"),
                    spec.get("value"),
                    read_only=bool(spec.get("read_only", False)),
                )
        for item in data.get("links", []):
            linked = item.get("document")
            doc.add_link(
                item["name"],
                cls.from_dict(linked) if linked is not None else None,
                unique_id=item.get("unique_id", ""),
                element_id=item.get("id", 0),
            )
        return doc

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.Title,
            "elements": [element.to_dict() for element in self.elements],
            "links": [
                {
                    "name": link.Name,
                    "unique_id": link.UniqueId,
                    "id": link.Id.Value,
                    "document": (
                        link.GetLinkDocument().to_dict()
                        if link.GetLinkDocument() is not None
                        else None
                    ),
                }
                for link in self.links
            ],
        }


class Transaction:
    """Single-document transaction; all-or-nothing on commit."""

    def __init__(self, document: Document, name: str = ""):
        self.document = document
        self.name = name
        self._status = TransactionStatus.Uninitialized

    def GetName(self) -> str:
        return self.name

    def GetStatus(self) -> TransactionStatus:
        return self._status

    def Start(self) -> TransactionStatus:
        if self._status != TransactionStatus.Uninitialized:
            raise RuntimeError("Transaction has already been started")
        self.document._begin(self)
        self._status = TransactionStatus.Started
        return self._status

    def Commit(self) -> TransactionStatus:
        if self._status != TransactionStatus.Started:
            raise RuntimeError("Transaction is not running")
        if self.document.fail_commit:
            self.document._end(keep=False)
            self._status = TransactionStatus.RolledBack
            return self._status
        self.document._end(keep=True)
        self._status = TransactionStatus.Committed
        return self._status

    def RollBack(self) -> TransactionStatus:
        if self._status != TransactionStatus.Started:
            raise RuntimeError("Transaction is not running")
        self.document._end(keep=False)
        self._status = TransactionStatus.RolledBack
        return self._status

    def HasStarted(self) -> bool:
        return self._status != TransactionStatus.Uninitialized

    def HasEnded(self) -> bool:
        return self._status in (
            TransactionStatus.Committed,
            TransactionStatus.RolledBack,
        )


class FilteredElementCollector:
    """Chainable element query over one document."""

    def __init__(self, document: Document):
        self._items: List[Element] = document.all_elements()

    def WhereElementIsNotElementType(self) -> "FilteredElementCollector":
        self._items = [e for e in self._items if not e.is_element_type]
        return self

    def WhereElementIsElementType(self) -> "FilteredElementCollector":
        self._items = [e for e in self._items if e.is_element_type]
        return self

    def OfClass(self, cls: type) -> "FilteredElementCollector":
        self._items = [e for e in self._items if isinstance(e, cls)]
        return self

    def ToElements(self) -> List[Element]:
        return list(self._items)

    def __iter__(self) -> Iterator[Element]:
        return iter(list(self._items))


class JsonDB:
    """API namespace for JSON-backed documents."""

    FilteredElementCollector = FilteredElementCollector
    StorageType = StorageType
    Transaction = Transaction
    TransactionStatus = TransactionStatus
    RevitLinkInstance = RevitLinkInstance
    ElementId = ElementId


def load_model(path: Union[str, Path]) -> Document:
    """Load a host document (and its linked documents) from a JSON file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    document = Document.from_dict(data)
    logger.info(
        f"Loaded '{document.Title}' from {path}: {len(document.elements)} elements, "
        f"{len(document.links)} links"
    )
    return document


def save_model(document: Document, path: Union[str, Path]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document.to_dict(), f, indent=2)
    logger.info(f"Saved '{document.Title}' to {path}")
