"""
DynamoDB utilities for Library Admin API

Provides functions for building update expressions and running full scans.
"""

from __future__ import annotations

from typing import Any


def scan_all(table, **scan_kwargs) -> list[dict]:
    """
    Scan a table to completion, following LastEvaluatedKey pagination.

    Args:
        table: DynamoDB Table resource
        **scan_kwargs: Extra arguments for table.scan (e.g. FilterExpression)

    Returns:
        list: Every item returned across all pages
    """
    response = table.scan(**scan_kwargs)
    items = list(response.get("Items", []))

    while "LastEvaluatedKey" in response:
        response = table.scan(ExclusiveStartKey=response["LastEvaluatedKey"], **scan_kwargs)
        items.extend(response.get("Items", []))

    return items


def _is_cleared(value: Any) -> bool:
    return value is None or value == ""


def build_update_expression(
    fields: dict[str, Any], allow_remove: bool = False
) -> tuple[str, dict[str, Any], dict[str, str]]:
    """
    Turn a field mapping into an update_item expression.

    Every attribute goes through a #name placeholder ("level" and "role"
    are DynamoDB reserved words). With allow_remove, None and "" clear the
    attribute instead of storing an empty value.

    Returns:
        tuple: (update_expression, expression_attribute_values, expression_attribute_names)

    Example:
        build_update_expression({"author": "Jane", "class_level": None}, allow_remove=True)
        # ("SET #author = :author REMOVE #class_level",
        #  {":author": "Jane"},
        #  {"#author": "author", "#class_level": "class_level"})
    """
    names = {f"#{field}": field for field in fields}
    removed = [field for field, value in fields.items() if allow_remove and _is_cleared(value)]
    values = {f":{field}": value for field, value in fields.items() if field not in removed}

    clauses = []
    if values:
        clauses.append("SET " + ", ".join(f"#{field} = :{field}" for field in fields if field not in removed))
    if removed:
        clauses.append("REMOVE " + ", ".join(f"#{field}" for field in removed))

    return " ".join(clauses), values, names


def build_update_params(
    key: dict[str, Any],
    fields: dict[str, Any],
    allow_remove: bool = False,
    condition_expression: str | None = None,
    return_values: str = "ALL_NEW",
) -> dict[str, Any]:
    """
    Keyword arguments for table.update_item(**params).

    Example:
        params = build_update_params(
            key={"id": profile_id},
            fields={"role": "user"},
            condition_expression="attribute_exists(id)",
        )
        updated = config.profiles_table.update_item(**params)["Attributes"]
    """
    expression, values, names = build_update_expression(fields, allow_remove=allow_remove)

    params: dict[str, Any] = {
        "Key": key,
        "UpdateExpression": expression,
        "ExpressionAttributeNames": names,
        "ReturnValues": return_values,
    }
    # DynamoDB rejects an empty ExpressionAttributeValues map
    if values:
        params["ExpressionAttributeValues"] = values
    if condition_expression:
        params["ConditionExpression"] = condition_expression
    return params
