# File: apiwizard/schema.py
"""
NexaFlow APIWizard - Schema Response Transformation
====================================================
Turns the raw schema-discovery payload of an admin service into
``TableInfo`` models.

Accepted payload shapes::

    {"tables": [...]}          # canonical
    {"resource": [...]}        # DreamFactory-style listing
    [...]                      # bare list

Each raw table may spell its keys in snake_case (``allow_null``,
``is_primary_key``, ``ref_table``) or camelCase (``nullable``,
``primaryKey``, ``foreignKey: {table, field}``).  Field types are
normalized to ``FieldType``; unknown database types fall back to
``string``.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from apiwizard.models import (
    FieldInfo,
    FieldType,
    ReferentialAction,
    RelationshipInfo,
    TableInfo,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.schema")

# ---------------------------------------------------------------------------
# Type normalization
# ---------------------------------------------------------------------------

# "varchar(255)", "decimal(10, 2)", "timestamp with time zone"
_TYPE_ARGS_RE: re.Pattern[str] = re.compile(r"^\s*([a-z_][a-z0-9_ ]*?)\s*(?:\(([^)]*)\))?\s*(unsigned)?\s*$")

_TYPE_MAP: Dict[str, FieldType] = {
    # string
    "string": FieldType.STRING,
    "varchar": FieldType.STRING,
    "nvarchar": FieldType.STRING,
    "char": FieldType.STRING,
    "nchar": FieldType.STRING,
    "character varying": FieldType.STRING,
    "character": FieldType.STRING,
    "enum": FieldType.STRING,
    "set": FieldType.STRING,
    # integer
    "integer": FieldType.INTEGER,
    "int": FieldType.INTEGER,
    "smallint": FieldType.INTEGER,
    "tinyint": FieldType.INTEGER,
    "mediumint": FieldType.INTEGER,
    "serial": FieldType.INTEGER,
    "id": FieldType.INTEGER,
    "reference": FieldType.INTEGER,
    "user_id": FieldType.INTEGER,
    "user_id_on_create": FieldType.INTEGER,
    "user_id_on_update": FieldType.INTEGER,
    # bigint
    "bigint": FieldType.BIGINT,
    "biginteger": FieldType.BIGINT,
    "bigserial": FieldType.BIGINT,
    # decimal
    "decimal": FieldType.DECIMAL,
    "numeric": FieldType.DECIMAL,
    "money": FieldType.DECIMAL,
    # float / double
    "float": FieldType.FLOAT,
    "real": FieldType.FLOAT,
    "double": FieldType.DOUBLE,
    "double precision": FieldType.DOUBLE,
    # boolean
    "boolean": FieldType.BOOLEAN,
    "bool": FieldType.BOOLEAN,
    "bit": FieldType.BOOLEAN,
    # temporal
    "date": FieldType.DATE,
    "datetime": FieldType.DATETIME,
    "datetime2": FieldType.DATETIME,
    "timestamp": FieldType.TIMESTAMP,
    "timestamptz": FieldType.TIMESTAMP,
    "timestamp with time zone": FieldType.TIMESTAMP,
    "timestamp without time zone": FieldType.TIMESTAMP,
    "timestamp_on_create": FieldType.TIMESTAMP,
    "timestamp_on_update": FieldType.TIMESTAMP,
    "time": FieldType.TIME,
    "time with time zone": FieldType.TIME,
    # text
    "text": FieldType.TEXT,
    "tinytext": FieldType.TEXT,
    "mediumtext": FieldType.TEXT,
    "longtext": FieldType.TEXT,
    "clob": FieldType.TEXT,
    # json
    "json": FieldType.JSON,
    "jsonb": FieldType.JSON,
    # binary
    "binary": FieldType.BINARY,
    "varbinary": FieldType.BINARY,
    "blob": FieldType.BINARY,
    "longblob": FieldType.BINARY,
    "mediumblob": FieldType.BINARY,
    "bytea": FieldType.BINARY,
    # uuid
    "uuid": FieldType.UUID,
    "uniqueidentifier": FieldType.UUID,
}


def normalize_field_type(source_type: Optional[str]) -> Tuple[FieldType, Optional[int], Optional[int]]:
    """
    Map a raw database type onto ``FieldType``.

    Returns ``(field_type, first_arg, second_arg)`` where the arguments are
    the parenthesised length / precision and scale, if any.

    Examples:
        >>> normalize_field_type("varchar(255)")
        (<FieldType.STRING: 'string'>, 255, None)
        >>> normalize_field_type("decimal(10,2)")
        (<FieldType.DECIMAL: 'decimal'>, 10, 2)
    """
    if not source_type:
        return FieldType.STRING, None, None

    match: Optional[re.Match[str]] = _TYPE_ARGS_RE.match(source_type.lower())
    if match is None:
        logger.debug("Unparseable type '%s'; treating as string.", source_type)
        return FieldType.STRING, None, None

    base: str = " ".join(match.group(1).split())
    args: List[Optional[int]] = []
    if match.group(2):
        for part in match.group(2).split(","):
            part = part.strip()
            args.append(int(part) if part.isdigit() else None)
    args.extend([None, None])

    # tinyint(1) is MySQL's boolean
    if base == "tinyint" and args[0] == 1:
        return FieldType.BOOLEAN, None, None

    field_type: Optional[FieldType] = _TYPE_MAP.get(base)
    if field_type is None:
        logger.debug("Unknown type '%s'; treating as string.", source_type)
        field_type = FieldType.STRING
    return field_type, args[0], args[1]


def normalize_referential_action(value: Optional[str]) -> ReferentialAction:
    """``"SET NULL"``, ``"set_null"`` and ``"set-null"`` all map to SET_NULL."""
    if not value:
        return ReferentialAction.NO_ACTION
    key: str = "-".join(value.replace("_", " ").replace("-", " ").lower().split())
    try:
        return ReferentialAction(key)
    except ValueError:
        logger.debug("Unknown referential action '%s'; using no-action.", value)
        return ReferentialAction.NO_ACTION


# ---------------------------------------------------------------------------
# Raw → model transformation
# ---------------------------------------------------------------------------


def _first(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def parse_field(raw: Mapping[str, Any]) -> FieldInfo:
    """Build a ``FieldInfo`` from one raw field mapping."""
    source_type: str = str(_first(raw, "db_type", "dbType", "type", default=""))
    field_type, first_arg, second_arg = normalize_field_type(source_type)

    abstract_type: Any = raw.get("type")
    if isinstance(abstract_type, str) and abstract_type.lower() in _TYPE_MAP:
        # DreamFactory reports both; the abstract type is the better signal.
        field_type = _TYPE_MAP[abstract_type.lower()]

    foreign_ref: Any = raw.get("foreignKey")
    ref_table: Optional[str] = _first(raw, "ref_table", "refTable")
    ref_field: Optional[str] = _first(raw, "ref_field", "refField")
    if isinstance(foreign_ref, Mapping):
        ref_table = ref_table or foreign_ref.get("table")
        ref_field = ref_field or foreign_ref.get("field")

    length: Optional[int] = _first(raw, "length", "max_length", "maxLength")
    precision: Optional[int] = _first(raw, "precision")
    scale: Optional[int] = _first(raw, "scale")
    if field_type in (FieldType.DECIMAL, FieldType.FLOAT, FieldType.DOUBLE):
        precision = precision if precision is not None else first_arg
        scale = scale if scale is not None else second_arg
    elif length is None:
        length = first_arg

    return FieldInfo(
        name=str(raw["name"]),
        source_type=source_type,
        type=field_type,
        nullable=bool(_first(raw, "allow_null", "nullable", "allowNull", default=True)),
        primary_key=bool(_first(raw, "is_primary_key", "primaryKey", "primary_key", default=False)),
        foreign_key=bool(
            _first(raw, "is_foreign_key", "isForeignKey", default=False) or ref_table
        ),
        unique=bool(_first(raw, "is_unique", "unique", "isUnique", default=False)),
        auto_increment=bool(
            _first(raw, "auto_increment", "autoIncrement", "is_auto_increment", default=False)
        ),
        length=length,
        precision=precision,
        scale=scale,
        ref_table=ref_table,
        ref_field=ref_field,
    )


def parse_relationship(raw: Mapping[str, Any], table_name: str) -> Optional[RelationshipInfo]:
    """Build a ``RelationshipInfo``; returns None for entries missing a target."""
    local_field: Optional[str] = _first(raw, "field", "fromField", "from_field")
    ref_table: Optional[str] = _first(raw, "ref_table", "refTable", "toTable", "to_table")
    ref_field: Optional[str] = _first(raw, "ref_field", "refField", "toField", "to_field")
    if not (local_field and ref_table and ref_field):
        logger.debug("Skipping incomplete relationship on '%s': %r", table_name, raw)
        return None
    name: str = str(_first(raw, "name", "id", default=f"{table_name}_{local_field}_fk"))
    return RelationshipInfo(
        name=name,
        field=str(local_field),
        ref_table=str(ref_table),
        ref_field=str(ref_field),
        on_delete=normalize_referential_action(_first(raw, "on_delete", "onDelete", "ref_on_delete")),
        on_update=normalize_referential_action(_first(raw, "on_update", "onUpdate", "ref_on_update")),
    )


def parse_table(raw: Mapping[str, Any]) -> TableInfo:
    """
    Build a ``TableInfo`` from one raw table mapping.

    Relationships come from an explicit ``related`` / ``relationships`` list;
    foreign-key fields without a matching entry get a derived relationship.
    """
    name: str = str(raw["name"])
    fields: List[FieldInfo] = [
        parse_field(f) for f in _first(raw, "field", "fields", default=[])
    ]

    relationships: List[RelationshipInfo] = []
    for item in _first(raw, "related", "relationships", default=[]):
        rel: Optional[RelationshipInfo] = parse_relationship(item, name)
        if rel is not None:
            relationships.append(rel)

    covered = {r.field for r in relationships}
    for f in fields:
        if f.ref_table and f.ref_field and f.name not in covered:
            relationships.append(
                RelationshipInfo(
                    name=f"{name}_{f.name}_fk",
                    field=f.name,
                    ref_table=f.ref_table,
                    ref_field=f.ref_field,
                )
            )

    return TableInfo(
        id=str(_first(raw, "id", default=name)),
        name=name,
        label=_first(raw, "label"),
        description=_first(raw, "description"),
        fields=fields,
        relationships=relationships,
    )


def parse_schema_response(payload: Any) -> List[TableInfo]:
    """
    Transform a schema-discovery response into tables, preserving order.

    Raises:
        ValueError: If the payload has none of the accepted shapes.
    """
    raw_tables: Iterable[Any]
    if isinstance(payload, list):
        raw_tables = payload
    elif isinstance(payload, Mapping) and isinstance(payload.get("tables"), list):
        raw_tables = payload["tables"]
    elif isinstance(payload, Mapping) and isinstance(payload.get("resource"), list):
        raw_tables = payload["resource"]
    else:
        raise ValueError(
            "Schema response must be a list or contain a 'tables' / 'resource' list."
        )

    tables: List[TableInfo] = [parse_table(t) for t in raw_tables]
    logger.debug("Parsed %d table(s) from schema response.", len(tables))
    return tables
