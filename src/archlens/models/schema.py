"""Response contracts and the field reader used to validate agent JSON.

Every stage result is a closed dataclass. Agents return loosely typed JSON, so
each result type is built through a FieldReader that checks shapes field by
field and raises SchemaValidationError with a JSON path on the first mismatch.
Keys that are not part of a result type are ignored.
"""

import math
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

from archlens.errors import SchemaValidationError

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

# JSON schema fragments for contract definitions
STRING: dict[str, Any] = {"type": "string"}
NUMBER: dict[str, Any] = {"type": "number"}


def array_of(items: dict[str, Any]) -> dict[str, Any]:
    """JSON schema for an array of ``items``."""
    return {"type": "array", "items": items}


def object_of(
    properties: dict[str, dict[str, Any]],
    required: tuple[str, ...] = (),
) -> dict[str, Any]:
    """JSON schema for an object with the given properties."""
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = list(required)
    return schema


class FieldReader:
    """Typed accessor over one decoded JSON object.

    Attributes:
        contract: Contract name reported in validation errors
        path: JSON path of this object (e.g., "$.risks[2]")
    """

    def __init__(self, contract: str, data: Any, path: str = "$") -> None:
        if not isinstance(data, dict):
            raise SchemaValidationError(
                contract,
                f"{path}: expected object, got {_type_name(data)}",
            )
        self.contract = contract
        self.path = path
        self._data: dict[str, Any] = data

    def _fail(self, key: str, expected: str, value: Any) -> SchemaValidationError:
        return SchemaValidationError(
            self.contract,
            f"{self.path}.{key}: expected {expected}, got {_type_name(value)}",
        )

    def has(self, key: str) -> bool:
        """Return True if the key is present and not null."""
        return self._data.get(key) is not None

    def text(self, key: str, default: str = "") -> str:
        """Read a string field; numbers are stringified."""
        value = self._data.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise self._fail(key, "string", value)

    def number(self, key: str, default: float = 0.0) -> float:
        """Read a numeric field; numeric strings are accepted.

        Infinity and NaN are rejected, whether decoded from JSON (``1e400``)
        or given as strings (``"nan"``).
        """
        value = self._data.get(key)
        if value is None:
            return default
        result: float | None = None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                result = float(value)
            except OverflowError:
                result = math.inf
        elif isinstance(value, str):
            try:
                result = float(value.strip())
            except ValueError:
                pass
        if result is None:
            raise self._fail(key, "number", value)
        if not math.isfinite(result):
            raise self._fail(key, "finite number", value)
        return result

    def integer(self, key: str, default: int = 0) -> int:
        """Read a numeric field as an integer."""
        return int(round(self.number(key, float(default))))

    def text_list(self, key: str) -> tuple[str, ...]:
        """Read an array of strings."""
        value = self._data.get(key)
        if value is None:
            return ()
        if not isinstance(value, list):
            raise self._fail(key, "array", value)
        items: list[str] = []
        for index, item in enumerate(value):
            if isinstance(item, str):
                items.append(item)
            elif isinstance(item, (int, float)) and not isinstance(item, bool):
                items.append(str(item))
            else:
                raise self._fail(f"{key}[{index}]", "string", item)
        return tuple(items)

    def objects(self, key: str) -> list["FieldReader"]:
        """Read an array of objects, one reader per element."""
        value = self._data.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise self._fail(key, "array", value)
        return [
            FieldReader(self.contract, item, f"{self.path}.{key}[{index}]")
            for index, item in enumerate(value)
        ]

    def child(self, key: str) -> "FieldReader":
        """Read a nested object; a missing object reads as empty."""
        value = self._data.get(key)
        if value is None:
            value = {}
        return FieldReader(self.contract, value, f"{self.path}.{key}")


class ContractResult(Protocol[T_co]):
    """A result type that can be built from decoded JSON."""

    @classmethod
    def from_dict(cls, data: Any, contract: str = ...) -> T_co: ...


@dataclass(frozen=True)
class ResponseContract(Generic[T]):
    """Declared response shape for one agent.

    Attributes:
        name: Contract identifier (also used as the agent's schema name)
        result_type: Dataclass with a ``from_dict(data, contract)`` classmethod
        schema: JSON schema sent to the provider for structured output
    """

    name: str
    result_type: type
    schema: dict[str, Any]

    def parse(self, data: Any) -> T:
        """Build the typed result from decoded JSON.

        Raises:
            SchemaValidationError: If the data does not match the contract
        """
        return self.result_type.from_dict(data, contract=self.name)  # type: ignore[no-any-return]


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
