"""Schema compatibility classification.

Compares the table sets of a source and a destination schema.
Pure logic -- no I/O, no database connections.

Usage:
    from db_sync.schema.classifier import classify_schemas
    from db_sync.schema.introspector import SchemaIntrospector

    source_schema = await SchemaIntrospector(source).introspect()
    dest_schema = await SchemaIntrospector(destination).introspect()

    result = classify_schemas(source_schema, dest_schema)
    for name in result.eligible_tables:
        ...
"""

from db_sync.schema.models import DatabaseSchema, SchemaClassification, TableSchema


def primary_key_issue(table: TableSchema) -> str | None:
    """Explain why a table has no usable single-column key, or None if it has one.

    Examples:
        >>> primary_key_issue(TableSchema(name="log"))
        'no primary key'
    """
    key_columns = table.primary_key_columns
    if not key_columns:
        return "no primary key"
    if len(key_columns) > 1:
        return f"composite primary key ({', '.join(key_columns)})"
    return None


def classify_schemas(
    source: DatabaseSchema,
    destination: DatabaseSchema,
) -> SchemaClassification:
    """Partition tables into common/uncommon and eligible/ineligible sets.

    Tables are matched by exact, case-sensitive name.  A common table is
    eligible iff its source definition has exactly one primary-key column.
    Output lists follow source iteration order; destination-only tables
    are appended in destination order.

    Args:
        source: Introspected source schema.
        destination: Introspected destination schema.

    Returns:
        ``SchemaClassification`` with:

        - ``common_tables``: names present on both sides
        - ``uncommon_tables``: names present on exactly one side
        - ``eligible_tables`` / ``ineligible_tables``: split of the common set
        - ``source_only_tables`` / ``destination_only_tables``: split of the
          uncommon set
        - ``ineligible_reasons``: why each ineligible table was rejected

    Examples:
        >>> schema = DatabaseSchema(tables={"users": TableSchema(name="users")})
        >>> result = classify_schemas(schema, schema)
        >>> result.common_tables, result.uncommon_tables
        (['users'], [])
        >>> result.ineligible_reasons
        {'users': 'no primary key'}
    """
    result = SchemaClassification()

    for name, table in source.tables.items():
        if name not in destination.tables:
            result.uncommon_tables.append(name)
            result.source_only_tables.append(name)
            continue

        result.common_tables.append(name)
        issue = primary_key_issue(table)
        if issue is None:
            result.eligible_tables.append(name)
        else:
            result.ineligible_tables.append(name)
            result.ineligible_reasons[name] = issue

    for name in destination.tables:
        if name not in source.tables:
            result.uncommon_tables.append(name)
            result.destination_only_tables.append(name)

    return result
