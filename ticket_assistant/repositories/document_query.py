"""
In-process evaluation of filter / sort / limit / projection over ticket documents.

Filters use the operator vocabulary of QueryPlan (``$eq``, ``$in``, ``$and`` ...).
Field paths are dotted store paths; a list met on the way fans out, so
``data.article.SenderType`` matches when any message has that sender type.
"""
import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

from ticket_assistant.core.errors import QueryRejectedError
from ticket_assistant.core.models import QueryOptions

logger = logging.getLogger(__name__)

_COMPARISONS = {
    "$gt": lambda a, b: a > b,
    "$gte": lambda a, b: a >= b,
    "$lt": lambda a, b: a < b,
    "$lte": lambda a, b: a <= b,
}


def resolve_values(document: Any, path: str) -> List[Any]:
    """All values reachable at ``path``; empty when the path is absent."""
    current = [document]
    for part in path.split("."):
        nxt = []
        for value in current:
            if isinstance(value, dict):
                if part in value:
                    nxt.append(value[part])
            elif isinstance(value, list):
                nxt.extend(item[part] for item in value if isinstance(item, dict) and part in item)
        current = nxt
        if not current:
            return []
    flattened = []
    for value in current:
        if isinstance(value, list):
            flattened.extend(value)
        flattened.append(value)
    return flattened


def _compare(op: str, value: Any, operand: Any) -> bool:
    try:
        return _COMPARISONS[op](value, operand)
    except TypeError:
        # Mismatched types (e.g. "5" > 3) never match
        return False


def _match_condition(values: List[Any], condition: Any) -> bool:
    if not (isinstance(condition, dict) and condition and all(
            isinstance(k, str) and k.startswith("$") for k in condition)):
        return condition in values

    for op, operand in condition.items():
        if op == "$eq":
            ok = operand in values
        elif op == "$ne":
            ok = operand not in values
        elif op == "$in":
            if not isinstance(operand, list):
                raise QueryRejectedError(f"$in expects a list, got {type(operand).__name__}")
            ok = any(v in operand for v in values)
        elif op == "$nin":
            if not isinstance(operand, list):
                raise QueryRejectedError(f"$nin expects a list, got {type(operand).__name__}")
            ok = not any(v in operand for v in values)
        elif op in _COMPARISONS:
            ok = any(_compare(op, v, operand) for v in values)
        elif op == "$exists":
            ok = bool(values) == bool(operand)
        else:
            raise QueryRejectedError(f"Unsupported field operator: {op}")
        if not ok:
            return False
    return True


def matches(document: Dict[str, Any], filter_doc: Optional[Dict[str, Any]]) -> bool:
    """True when ``document`` satisfies ``filter_doc``. Raises QueryRejectedError for bad filters."""
    if not filter_doc:
        return True
    if not isinstance(filter_doc, dict):
        raise QueryRejectedError(f"Filter must be an object, got {type(filter_doc).__name__}")

    for key, condition in filter_doc.items():
        if key == "$and":
            if not isinstance(condition, list):
                raise QueryRejectedError("$and expects a list of filters")
            if not all(matches(document, sub) for sub in condition):
                return False
        elif key == "$or":
            if not isinstance(condition, list):
                raise QueryRejectedError("$or expects a list of filters")
            if not any(matches(document, sub) for sub in condition):
                return False
        elif key.startswith("$"):
            raise QueryRejectedError(f"Unsupported top-level operator: {key}")
        elif not _match_condition(resolve_values(document, key), condition):
            return False
    return True


def _sort_key(value: Any):
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    return (2, str(value))


def sort_documents(documents: Iterable[Dict[str, Any]], sort: Optional[Dict[str, int]]) -> List[Dict[str, Any]]:
    """
    Stable multi-key sort. ``sort`` maps paths to 1 (ascending) or -1 (descending).

    Documents missing a sort field go first ascending and last descending.
    """
    ordered = list(documents)
    if not sort:
        return ordered

    for path, direction in reversed(list(sort.items())):
        if direction not in (1, -1):
            raise QueryRejectedError(f"Sort direction for {path} must be 1 or -1, got {direction}")

        def key(doc, _path=path):
            # Array paths sort on their last scalar element
            scalars = [v for v in resolve_values(doc, _path) if not isinstance(v, (list, dict))]
            if not scalars:
                return (0, (0, 0))
            return (1, _sort_key(scalars[-1]))

        ordered.sort(key=key, reverse=(direction == -1))
    return ordered


def _set_path(target: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def _get_path(source: Any, path: str):
    for part in path.split("."):
        if not isinstance(source, dict) or part not in source:
            return False, None
        source = source[part]
    return True, source


def _delete_path(target: Dict[str, Any], path: str) -> None:
    parts = path.split(".")
    for part in parts[:-1]:
        target = target.get(part)
        if not isinstance(target, dict):
            return
    target.pop(parts[-1], None)


def project_document(document: Dict[str, Any], projection: Optional[Dict[str, int]]) -> Dict[str, Any]:
    """Apply an inclusive ({path: 1}) or exclusive ({path: 0}) projection to a copy of ``document``."""
    if not projection:
        return copy.deepcopy(document)

    include = {path for path, flag in projection.items() if flag}
    exclude = {path for path, flag in projection.items() if not flag}

    if include and (exclude - {"key"}):
        raise QueryRejectedError("Projection cannot mix inclusion and exclusion")

    if include:
        projected: Dict[str, Any] = {}
        if "key" not in exclude and "key" in document:
            projected["key"] = document["key"]
        for path in include:
            found, value = _get_path(document, path)
            if found:
                _set_path(projected, path, copy.deepcopy(value))
        return projected

    projected = copy.deepcopy(document)
    for path in exclude:
        _delete_path(projected, path)
    return projected


def apply_options(documents: Iterable[Dict[str, Any]], options: QueryOptions) -> List[Dict[str, Any]]:
    """Sort, limit and project an already-filtered sequence of documents."""
    ordered = sort_documents(documents, options.sort)
    return [project_document(doc, options.projection) for doc in ordered[:options.limit]]
