"""
Ticket Repository for reading support-ticket documents.

Two backends implement the same ``find(filter, options)`` contract:

- InMemoryTicketRepository: documents held in a list (optionally loaded from
  a JSON file); used for local development and tests.
- DynamoTicketRepository: scans a DynamoDB table with a translated
  FilterExpression, then sorts/limits/projects in process.

Both raise QueryRejectedError for filters they cannot evaluate and
TicketStoreError when the store itself fails. Neither mutates stored data.
"""
import json
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from functools import reduce
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from ticket_assistant.config import (
    AWS_REGION,
    DYNAMODB_TICKET_TABLE_NAME,
    TICKET_DATA_FILE,
    TICKET_STORE_BACKEND,
)
from ticket_assistant.core.errors import QueryRejectedError, TicketStoreError
from ticket_assistant.core.models import QueryOptions, find_disallowed_operators
from ticket_assistant.repositories.document_query import apply_options, matches

logger = logging.getLogger(__name__)


class TicketRepository(ABC):
    """Read-only document store of ticket records."""

    backend = "abstract"

    @abstractmethod
    def find(self, filter_doc: Dict[str, Any], options: QueryOptions) -> List[Dict[str, Any]]:
        """
        Return the documents matching ``filter_doc``, ordered and limited per ``options``.

        Raises:
            QueryRejectedError: the filter or options cannot be evaluated
            TicketStoreError: the store is unreachable or failed
        """

    @staticmethod
    def _check_operators(filter_doc: Dict[str, Any]) -> None:
        disallowed = find_disallowed_operators(filter_doc)
        if disallowed:
            raise QueryRejectedError(f"Operators not permitted: {sorted(set(disallowed))}")


class InMemoryTicketRepository(TicketRepository):

    backend = "memory"

    def __init__(self, documents: Optional[List[Dict[str, Any]]] = None):
        self._documents: List[Dict[str, Any]] = list(documents or [])
        logger.info(f"📚 Initialized InMemoryTicketRepository with {len(self._documents)} documents")

    @classmethod
    def from_file(cls, path: str) -> "InMemoryTicketRepository":
        """Load documents from a JSON file holding either a list or ``{"tickets": [...]}``."""
        try:
            with open(path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as e:
            raise TicketStoreError(f"Could not load ticket data from {path}: {e}") from e

        if isinstance(payload, dict):
            payload = payload.get("tickets", [])
        if not isinstance(payload, list):
            raise TicketStoreError(f"Ticket data in {path} must be a list of documents")

        logger.info(f"📂 Loaded {len(payload)} ticket documents from {path}")
        return cls(payload)

    def __len__(self) -> int:
        return len(self._documents)

    def find(self, filter_doc: Dict[str, Any], options: QueryOptions) -> List[Dict[str, Any]]:
        self._check_operators(filter_doc)
        matched = [doc for doc in self._documents if matches(doc, filter_doc)]
        results = apply_options(matched, options)
        logger.debug(f"In-memory find matched {len(matched)}, returning {len(results)}")
        return results


def _to_dynamo_value(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, list):
        return [_to_dynamo_value(v) for v in value]
    return value


def _from_dynamo(value: Any) -> Any:
    """Convert boto3's Decimal numbers back to int/float, recursively."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value


def _field_condition(path: str, condition: Any):
    attr = Attr(path)
    if not (isinstance(condition, dict) and condition and all(
            isinstance(k, str) and k.startswith("$") for k in condition)):
        return attr.eq(_to_dynamo_value(condition))

    parts = []
    for op, operand in condition.items():
        operand = _to_dynamo_value(operand)
        if op == "$eq":
            parts.append(attr.eq(operand))
        elif op == "$ne":
            parts.append(attr.ne(operand))
        elif op == "$in":
            parts.append(attr.is_in(operand))
        elif op == "$nin":
            parts.append(~attr.is_in(operand))
        elif op == "$gt":
            parts.append(attr.gt(operand))
        elif op == "$gte":
            parts.append(attr.gte(operand))
        elif op == "$lt":
            parts.append(attr.lt(operand))
        elif op == "$lte":
            parts.append(attr.lte(operand))
        elif op == "$exists":
            parts.append(attr.exists() if operand else attr.not_exists())
        else:
            raise QueryRejectedError(f"Unsupported field operator for DynamoDB: {op}")
    return reduce(lambda a, b: a & b, parts)


def build_filter_expression(filter_doc: Dict[str, Any]):
    """
    Translate a plan filter into a boto3 condition.

    Returns None for an empty filter (scan everything).
    """
    if not filter_doc:
        return None

    parts = []
    for key, condition in filter_doc.items():
        if key in ("$and", "$or"):
            if not isinstance(condition, list) or not condition:
                raise QueryRejectedError(f"{key} expects a non-empty list of filters")
            subs = [build_filter_expression(sub) for sub in condition]
            subs = [s for s in subs if s is not None]
            if not subs:
                continue
            combine = (lambda a, b: a & b) if key == "$and" else (lambda a, b: a | b)
            parts.append(reduce(combine, subs))
        elif key.startswith("$"):
            raise QueryRejectedError(f"Unsupported top-level operator: {key}")
        else:
            parts.append(_field_condition(key, condition))

    if not parts:
        return None
    return reduce(lambda a, b: a & b, parts)


class DynamoTicketRepository(TicketRepository):
    """
    Ticket documents stored one per item in DynamoDB.

    Items carry the document layout directly (``key`` plus the nested ``data``
    map), so plan paths such as ``data.ticket.StateType`` are valid attribute
    paths. Sorting is not available on a scan and happens after retrieval.
    """

    backend = "dynamodb"

    def __init__(self, table_name: str = DYNAMODB_TICKET_TABLE_NAME, region_name: str = AWS_REGION):
        self.dynamodb = boto3.resource("dynamodb", region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        self.table_name = table_name
        logger.info(f"🎫 Initialized DynamoTicketRepository with table: {table_name}")

    def find(self, filter_doc: Dict[str, Any], options: QueryOptions) -> List[Dict[str, Any]]:
        self._check_operators(filter_doc)
        expression = build_filter_expression(filter_doc)

        scan_kwargs: Dict[str, Any] = {}
        if expression is not None:
            scan_kwargs["FilterExpression"] = expression

        logger.info(f"🔍 Scanning DynamoDB table '{self.table_name}' (filtered={expression is not None})")
        items: List[Dict[str, Any]] = []
        try:
            response = self.table.scan(**scan_kwargs)
            items.extend(response.get("Items", []))

            while "LastEvaluatedKey" in response:
                logger.debug(f"📄 Fetching next page (current items: {len(items)})")
                response = self.table.scan(ExclusiveStartKey=response["LastEvaluatedKey"], **scan_kwargs)
                items.extend(response.get("Items", []))
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code == "ValidationException":
                raise QueryRejectedError(f"DynamoDB rejected the filter: {e}") from e
            raise TicketStoreError(f"DynamoDB scan failed ({code or 'unknown'}): {e}") from e
        except BotoCoreError as e:
            raise TicketStoreError(f"DynamoDB unreachable: {e}") from e

        logger.info(f"✅ Retrieved {len(items)} items from DynamoDB")
        return apply_options([_from_dynamo(item) for item in items], options)


def get_ticket_repository(backend: Optional[str] = None) -> TicketRepository:
    """
    Factory function to get a ticket repository for the configured backend.

    Args:
        backend: "memory" or "dynamodb". If None, uses TICKET_STORE_BACKEND from config.
    """
    backend = (backend or TICKET_STORE_BACKEND).lower()
    logger.info(f"📋 Using ticket store backend: {backend}")

    if backend == "dynamodb":
        return DynamoTicketRepository()
    if backend != "memory":
        logger.warning(f"⚠️ Unknown ticket store backend '{backend}', using in-memory store")

    if TICKET_DATA_FILE:
        return InMemoryTicketRepository.from_file(TICKET_DATA_FILE)
    return InMemoryTicketRepository()
