"""Connection type catalog.

The single ordinal scale shared by connections between people and by a
person's relationship to the viewer. Every module imports tiers from here;
there is no other table of connection types.
"""

from __future__ import annotations

from enum import IntEnum
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict

from socialgraph.core.errors import InvalidArgument

CATALOG_VERSION = 1


class ConnectionType(IntEnum):
    NONE = 0
    ACQUAINTED = 1
    FAMILIAR = 2
    CLOSE = 3
    TRUSTED = 4
    ALLIED = 5


class LineStyle:
    NONE = "none"
    DASHED = "dashed-line"
    THIN = "thin-line"
    STANDARD = "standard-line"
    DOUBLE = "double-line"
    HEAVY = "heavy-line"


class ConnectionTypeInfo(BaseModel):
    """Display attributes of one tier."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    line_style: str
    description: str
    icon: str | None
    icon_size: int


# Relationship-to-viewer falls back to this tier when unset.
BASELINE_TIER = ConnectionType.ACQUAINTED

CATALOG: Mapping[ConnectionType, ConnectionTypeInfo] = MappingProxyType({
    ConnectionType.NONE: ConnectionTypeInfo(
        id=0, name="None", line_style=LineStyle.NONE,
        description="No connection", icon=None, icon_size=0,
    ),
    ConnectionType.ACQUAINTED: ConnectionTypeInfo(
        id=1, name="Acquainted", line_style=LineStyle.DASHED,
        description="Thin dashed line", icon="circle-small", icon_size=8,
    ),
    ConnectionType.FAMILIAR: ConnectionTypeInfo(
        id=2, name="Familiar", line_style=LineStyle.THIN,
        description="Thin line", icon="circle", icon_size=10,
    ),
    ConnectionType.CLOSE: ConnectionTypeInfo(
        id=3, name="Close", line_style=LineStyle.STANDARD,
        description="Standard line", icon="diamond", icon_size=12,
    ),
    ConnectionType.TRUSTED: ConnectionTypeInfo(
        id=4, name="Trusted", line_style=LineStyle.DOUBLE,
        description="Double line", icon="square", icon_size=14,
    ),
    ConnectionType.ALLIED: ConnectionTypeInfo(
        id=5, name="Allied", line_style=LineStyle.HEAVY,
        description="Heavy line", icon="star", icon_size=16,
    ),
})


def _check_catalog() -> None:
    if set(CATALOG) != set(ConnectionType):
        raise RuntimeError("Connection type catalog does not cover every tier")
    for member, info in CATALOG.items():
        if info.id != member.value:
            raise RuntimeError(
                f"Catalog entry {info.name!r} has id {info.id}, expected {member.value}"
            )
    sizes = [CATALOG[m].icon_size for m in ConnectionType if m != ConnectionType.NONE]
    if sizes != sorted(sizes) or len(set(sizes)) != len(sizes):
        raise RuntimeError("Icon sizes must grow strictly with tier")


_check_catalog()


def parse_connection_type(value: Any) -> ConnectionType:
    """Coerce an ordinal or a tier name into a ConnectionType.

    Raises:
        InvalidArgument: if the value is not a known tier.
    """
    if isinstance(value, ConnectionType):
        return value
    if isinstance(value, bool):
        raise InvalidArgument(f"Invalid connection type: {value!r}")
    if isinstance(value, int):
        try:
            return ConnectionType(value)
        except ValueError:
            raise InvalidArgument(
                f"Connection type {value} is outside 0-{max(ConnectionType)}"
            ) from None
    if isinstance(value, str):
        key = value.strip()
        if key.isdigit():
            return parse_connection_type(int(key))
        for member, info in CATALOG.items():
            if info.name.lower() == key.lower():
                return member
    raise InvalidArgument(f"Invalid connection type: {value!r}")


def describe(value: int) -> ConnectionTypeInfo:
    return CATALOG[parse_connection_type(value)]


def list_catalog() -> list[ConnectionTypeInfo]:
    return [CATALOG[m] for m in ConnectionType]
