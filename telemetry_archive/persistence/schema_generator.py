"""
DDL Generation from Pydantic Models

Automatically generates CREATE SEQUENCE, CREATE TABLE and CREATE INDEX
statements from Pydantic models, so each store's schema stays in sync with
its model definitions.

Auto-increment ``id`` columns are backed by a per-table DuckDB sequence
named ``<table>_id_seq``.
"""

import inspect
from datetime import datetime
from enum import Enum
from typing import Any, get_args, get_origin

from pydantic import BaseModel

# ============================================================================
# Type Mapping
# ============================================================================

PYTHON_TO_SQL_TYPE_MAP = {
    str: "VARCHAR",
    int: "BIGINT",
    float: "DOUBLE",
    bool: "BOOLEAN",
    datetime: "TIMESTAMP",
}


def unwrap_optional(py_type: Any) -> Any:
    """Return the first non-None member of an Optional/Union annotation.

    Examples:
        >>> unwrap_optional(int | None)
        <class 'int'>
        >>> unwrap_optional(str)
        <class 'str'>
    """
    if get_origin(py_type) is not None:
        for arg in get_args(py_type):
            if arg is not type(None):
                return arg
    return py_type


def python_type_to_sql_type(py_type: Any) -> str:
    """Convert Python type annotation to SQL type.

    Args:
        py_type: Python type annotation (can be Optional, Enum, etc.)

    Returns:
        SQL type string (VARCHAR, BIGINT, etc.)

    Examples:
        >>> python_type_to_sql_type(str)
        'VARCHAR'
        >>> python_type_to_sql_type(int | None)
        'BIGINT'
    """
    py_type = unwrap_optional(py_type)

    # Enums are stored by value
    if inspect.isclass(py_type) and issubclass(py_type, Enum):
        return "VARCHAR"

    return PYTHON_TO_SQL_TYPE_MAP.get(py_type, "VARCHAR")


def table_name_of(model: type[BaseModel]) -> str:
    """Return ``model_config['table_name']`` or raise ValueError."""
    config = getattr(model, "model_config", None)
    if not config or "table_name" not in config:
        raise ValueError(f"Model {model.__name__} missing model_config['table_name']")
    return config["table_name"]


def sequence_name_of(model: type[BaseModel]) -> str | None:
    """Return the id sequence name for a model, or None without an int ``id``."""
    id_field = model.model_fields.get("id")
    if id_field is None or not _is_int_type(id_field.annotation):
        return None
    return f"{table_name_of(model)}_id_seq"


# ============================================================================
# DDL Generation
# ============================================================================


def generate_create_sequence_ddl(model: type[BaseModel]) -> str | None:
    """Generate CREATE SEQUENCE DDL for a model's auto-increment id.

    Examples:
        >>> from telemetry_archive.persistence.models import ArchiveRunRecord
        >>> generate_create_sequence_ddl(ArchiveRunRecord)
        'CREATE SEQUENCE IF NOT EXISTS archive_runs_id_seq START 1;'
    """
    sequence_name = sequence_name_of(model)
    if sequence_name is None:
        return None
    return f"CREATE SEQUENCE IF NOT EXISTS {sequence_name} START 1;"


def generate_create_table_ddl(model: type[BaseModel]) -> str:
    """Generate CREATE TABLE DDL from Pydantic model.

    Args:
        model: Pydantic model class with model_config["table_name"]

    Returns:
        SQL CREATE TABLE statement

    Raises:
        ValueError: If model is missing required configuration

    Examples:
        >>> from telemetry_archive.persistence.models import PositionRecord
        >>> ddl = generate_create_table_ddl(PositionRecord)
        >>> "CREATE TABLE IF NOT EXISTS positions" in ddl
        True
    """
    table_name = table_name_of(model)
    primary_key = model.model_config.get("primary_key", [])
    sequence_name = sequence_name_of(model)

    columns = []
    for field_name, field_info in model.model_fields.items():
        py_type = field_info.annotation
        sql_type = python_type_to_sql_type(py_type)
        is_optional = _is_field_optional(py_type, field_info)

        null_constraint = "" if is_optional else " NOT NULL"

        default = ""
        if field_name == "id" and sequence_name is not None:
            default = f" DEFAULT nextval('{sequence_name}')"

        columns.append(f"    {field_name} {sql_type}{default}{null_constraint}")

    if primary_key:
        pk_cols = ", ".join(primary_key)
        columns.append(f"    PRIMARY KEY ({pk_cols})")

    ddl = f"CREATE TABLE IF NOT EXISTS {table_name} (\n"
    ddl += ",\n".join(columns)
    ddl += "\n);"

    return ddl


def generate_create_indexes_ddl(model: type[BaseModel]) -> list[str]:
    """Generate CREATE INDEX statements from Pydantic model.

    Args:
        model: Pydantic model class with model_config["indexes"]

    Returns:
        List of SQL CREATE INDEX statements
    """
    config = model.model_config
    indexes = config.get("indexes") or []
    table_name = config.get("table_name", "unknown")

    return [
        f"CREATE INDEX IF NOT EXISTS {index_name} ON {table_name} ({', '.join(columns)});"
        for index_name, columns in indexes
    ]


def generate_schema_ddl(models: list[type[BaseModel]]) -> str:
    """Generate complete schema DDL for a store's models.

    Sequences come first, then each table followed by its indexes.

    Examples:
        >>> from telemetry_archive.persistence.models import ARCHIVE_MODELS
        >>> ddl = generate_schema_ddl(ARCHIVE_MODELS)
        >>> "archived_trades" in ddl and "archive_runs" in ddl
        True
    """
    ddl_parts = []

    for model in models:
        sequence_ddl = generate_create_sequence_ddl(model)
        if sequence_ddl:
            ddl_parts.append(sequence_ddl)

    for model in models:
        ddl_parts.append(generate_create_table_ddl(model))
        ddl_parts.extend(generate_create_indexes_ddl(model))

    return "\n\n".join(ddl_parts)


# ============================================================================
# Helper Functions
# ============================================================================


def _is_field_optional(py_type: Any, field_info: Any) -> bool:
    """Check if a field is optional (nullable).

    Args:
        py_type: Field type annotation
        field_info: Pydantic FieldInfo object

    Returns:
        True if field can be None
    """
    origin = get_origin(py_type)
    if origin is not None and type(None) in get_args(py_type):
        return True

    # A None default also makes the column nullable
    if getattr(field_info, "default", ...) is None:
        return True

    return False


def _is_int_type(py_type: Any) -> bool:
    """Check if type is int or Optional[int]."""
    return unwrap_optional(py_type) is int


# ============================================================================
# Schema Validation
# ============================================================================


def validate_table_schema(conn: Any, model: type[BaseModel]) -> tuple[bool, list[str]]:
    """Validate that database table schema matches Pydantic model.

    Args:
        conn: DuckDB connection
        model: Pydantic model to validate against

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    try:
        table_name = table_name_of(model)
    except ValueError as e:
        return False, [str(e)]

    result = conn.execute(
        """
        SELECT column_name FROM information_schema.columns
        WHERE table_schema = 'main' AND table_name = ?
        """,
        [table_name],
    ).fetchall()
    db_fields = {row[0] for row in result}

    if not db_fields:
        return False, [f"Table {table_name} does not exist"]

    errors = []
    model_fields = set(model.model_fields.keys())

    for col in sorted(model_fields - db_fields):
        errors.append(f"Column '{col}' missing from table {table_name}")

    extra_columns = db_fields - model_fields
    if extra_columns:
        errors.append(f"Unexpected columns in {table_name}: {sorted(extra_columns)}")

    return len(errors) == 0, errors
