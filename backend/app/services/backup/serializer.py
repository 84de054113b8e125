# app/services/backup/serializer.py
"""
Sérialisation CSV de documents hétérogènes.

Chaque collection est exportée comme une liste de dictionnaires dont les clés
peuvent varier d'un document à l'autre (champs optionnels absents). L'en-tête
est l'union triée de toutes les clés, et chaque cellule passe par
``classify`` avant d'être rendue, ce qui couvre tous les types de valeurs.
"""
import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Mapping, Sequence

Record = Mapping[str, Any]

DEFAULT_EMPTY_MESSAGE = "No data available"
LIST_SEPARATOR = "; "
_NEEDS_QUOTING = (",", '"', "\n", "\r")


class ValueKind(str, Enum):
    NULL = "null"
    SCALAR = "scalar"
    LIST = "list"
    OBJECT = "object"


def classify(value: Any) -> ValueKind:
    if value is None:
        return ValueKind.NULL
    if isinstance(value, Mapping):
        return ValueKind.OBJECT
    if isinstance(value, (list, tuple, set, frozenset)):
        return ValueKind.LIST
    return ValueKind.SCALAR


def _json_default(value: Any):
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


def to_json(value: Any) -> str:
    return json.dumps(value, default=_json_default, ensure_ascii=False, separators=(",", ":"))


def scalar_to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def render_value(value: Any) -> str:
    kind = classify(value)
    if kind is ValueKind.NULL:
        return ""
    if kind is ValueKind.OBJECT:
        return to_json(value)
    if kind is ValueKind.LIST:
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
        return LIST_SEPARATOR.join(_render_list_item(item) for item in items)
    return scalar_to_text(value)


def _render_list_item(item: Any) -> str:
    kind = classify(item)
    if kind is ValueKind.NULL:
        return ""
    if kind is ValueKind.SCALAR:
        return scalar_to_text(item)
    # Objets et listes imbriquées restent du JSON pour ne pas perdre la structure
    return to_json(item)


def escape_cell(text: str) -> str:
    if '"' in text:
        text = text.replace('"', '""')
    if any(ch in text for ch in _NEEDS_QUOTING):
        text = f'"{text}"'
    return text


def collect_headers(documents: Iterable[Record]) -> List[str]:
    headers = set()
    for doc in documents:
        headers.update(doc.keys())
    return sorted(headers)


def to_csv_row(document: Record, headers: Sequence[str]) -> str:
    return ",".join(escape_cell(render_value(document.get(header))) for header in headers)


def to_csv(documents: Sequence[Record], empty_message: str = DEFAULT_EMPTY_MESSAGE) -> str:
    if not documents:
        return f"{empty_message}\n"
    headers = collect_headers(documents)
    rows = [",".join(escape_cell(h) for h in headers)]
    rows.extend(to_csv_row(doc, headers) for doc in documents)
    return "\n".join(rows)
