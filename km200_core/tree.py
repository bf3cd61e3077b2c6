"""Discovery of the capability tree of a KM200 gateway.

The gateway has no listing of its capabilities. Starting from a set of well
known roots, every ``refEnum`` document names its children, which are queried
in turn until only leaves remain.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import KM200Error, KM200Forbidden, KM200TreeError
from .protocol import FIRMWARE_PATH

if TYPE_CHECKING:
    from .client import KM200Client

_LOGGER = logging.getLogger(__name__)

WELL_KNOWN_ROOTS: tuple[str, ...] = (
    "/system",
    "/dhwCircuits",
    "/gateway",
    "/heatingCircuits",
    "/heatSources",
    "/notifications",
    "/recordings",
    "/solarCircuits",
)

REFERENCE_TYPE = "refEnum"
VALUE_TYPES = frozenset(
    {
        "stringValue",
        "floatValue",
        "arrayData",
        "switchProgram",
        "errorList",
        "yRecording",
        "systeminfo",
    }
)

DEFAULT_MAX_DEPTH = 32


class EndpointKind(Enum):
    """Generic shape of a capability."""

    VALUE = "value"
    REFERENCE = "reference"
    FORBIDDEN = "forbidden"
    UNKNOWN = "unknown"
    FIRMWARE = "firmware"


@dataclass(frozen=True)
class KM200Endpoint:
    """One node of the capability tree.

    Attributes:
        path: Capability path, always starting with "/"
        kind: Generic shape of the capability
        type: Type declared by the gateway, e.g. "floatValue"
        value: Value as text (VALUE, UNKNOWN and FIRMWARE nodes)
        allowed_values: JSON text of the allowed values, if declared
        writeable: Whether the capability accepts updates
        recordable: Whether the gateway records the capability
        body: Decrypted document the node was built from
        children: Child nodes of a REFERENCE node, in document order
    """

    path: str
    kind: EndpointKind
    type: str
    value: str | None = None
    allowed_values: str | None = None
    writeable: bool = False
    recordable: bool = False
    body: str | None = None
    children: tuple[KM200Endpoint, ...] = ()

    def __str__(self) -> str:
        head = f"{self.path} [{self.type}]"
        if self.kind in (EndpointKind.VALUE, EndpointKind.FIRMWARE):
            flags = ("w" if self.writeable else "") + ("r" if self.recordable else "")
            allowed = self.allowed_values or ""
            return f"{head}[{flags}]: {self.value} {allowed}".rstrip()
        if self.kind is EndpointKind.UNKNOWN:
            return f"{head} [UNKNOWN]: {self.value}"
        return head


@dataclass(frozen=True)
class KM200Tree:
    """Capability tree below the well known roots."""

    roots: tuple[KM200Endpoint, ...]

    def traverse(self) -> Iterator[KM200Endpoint]:
        """Yield every non-reference node depth first in document order."""
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            if node.kind is EndpointKind.REFERENCE:
                stack.extend(reversed(node.children))
            else:
                yield node


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _flag(value: Any) -> bool:
    if isinstance(value, (bool, int)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _value_endpoint(path: str, type_: str, document: dict[str, Any], body: str) -> KM200Endpoint:
    if "value" in document:
        value = _text(document["value"])
    elif "values" in document:
        value = _text(document["values"])
    else:
        value = _text(document)

    allowed = document.get("allowedValues")
    return KM200Endpoint(
        path=path,
        kind=EndpointKind.VALUE,
        type=type_,
        value=value,
        allowed_values=_text(allowed) if allowed is not None else None,
        writeable=_flag(document.get("writeable", False)),
        recordable=_flag(document.get("recordable", False)),
        body=body,
    )


class KM200TreeBuilder:
    """Explore the capabilities of a gateway through a KM200Client.

    A forbidden capability becomes a FORBIDDEN node so that partially
    restricted gateways still produce a complete tree. Any other error aborts
    the exploration.
    """

    def __init__(
        self,
        client: KM200Client,
        roots: Sequence[str] = WELL_KNOWN_ROOTS,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._client = client
        self._roots = tuple(roots)
        self._max_depth = max_depth

    async def build(self, stop: asyncio.Event | None = None) -> KM200Tree:
        """Explore all roots.

        Args:
            stop: Optional event; once set, exploration stops before the
                next query with asyncio.CancelledError

        Raises:
            asyncio.CancelledError: If stop was set or the task was cancelled
            KM200TreeError: On a reference cycle or too deep nesting
            KM200Error: On any gateway error other than forbidden
        """
        roots = []
        for path in self._roots:
            roots.append(await self._expand(path, (), stop))
        return KM200Tree(tuple(roots))

    async def _expand(
        self, path: str, ancestors: tuple[str, ...], stop: asyncio.Event | None
    ) -> KM200Endpoint:
        if stop is not None and stop.is_set():
            raise asyncio.CancelledError("Exploring was interrupted")
        if path in ancestors:
            raise KM200TreeError(f"{path} references itself via {' -> '.join(ancestors)}")
        if len(ancestors) >= self._max_depth:
            raise KM200TreeError(f"{path} is nested deeper than {self._max_depth}")

        _LOGGER.debug("Exploring %s", path)
        try:
            body = await self._client.query(path)
        except KM200Forbidden:
            _LOGGER.debug("%s is forbidden", path)
            return KM200Endpoint(path=path, kind=EndpointKind.FORBIDDEN, type="forbidden")

        if path == FIRMWARE_PATH:
            return KM200Endpoint(
                path=path,
                kind=EndpointKind.FIRMWARE,
                type="firmware",
                value="firmware",
                body=body,
            )

        try:
            document = json.loads(body)
        except json.JSONDecodeError as err:
            raise KM200Error(f"{path} returned invalid JSON") from err
        if not isinstance(document, dict):
            raise KM200Error(f"{path} did not return a JSON object")

        type_ = _text(document.get("type", ""))
        if type_ == REFERENCE_TYPE:
            children = []
            for reference in document.get("references") or ():
                child = reference.get("id") if isinstance(reference, dict) else None
                if not isinstance(child, str):
                    raise KM200Error(f"{path} has a reference without id")
                children.append(await self._expand(child, ancestors + (path,), stop))
            return KM200Endpoint(
                path=path,
                kind=EndpointKind.REFERENCE,
                type=type_,
                body=body,
                children=tuple(children),
            )

        if type_ in VALUE_TYPES:
            return _value_endpoint(path, type_, document, body)

        _LOGGER.info("Unknown type %r for %s", type_, path)
        return KM200Endpoint(
            path=path,
            kind=EndpointKind.UNKNOWN,
            type=type_,
            value=body,
            body=body,
        )
