"""
List items and the structural edits the list editor performs on them.

A list holds top-level items; each item may carry one level of child items
(title plus optional tag). Every operation returns a new item array and
leaves its input untouched.
"""

import copy
from typing import Any, Dict, Iterable, List, Optional

from favely.errors import ValidationError
from favely.models.list_models import MAX_ITEMS


def _clean_property(prop: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": prop.get("type") or "text",
        "tag": prop.get("tag") or None,
        "value": prop["value"],
    }


def _clean_child(child: Dict[str, Any]) -> Dict[str, Any]:
    return {"title": child["title"], "tag": child.get("tag") or None}


def normalize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Storage form of an item, from API input (camelCase) or a stored document."""
    if not item.get("title"):
        raise ValidationError("Item title is required")
    return {
        "title": item["title"],
        "comment": item.get("comment"),
        "completed": bool(item.get("completed", False)),
        "properties": [_clean_property(p) for p in item.get("properties") or [] if p.get("value")],
        "childItems": [_clean_child(c) for c in item.get("childItems") or [] if c.get("title")],
    }


def normalize_items(items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    result = [normalize_item(item) for item in items]
    if len(result) > MAX_ITEMS:
        raise ValidationError(f"List cannot have more than {MAX_ITEMS} items")
    return result


def _check_index(items: List[Any], index: Optional[int], name: str = "index") -> int:
    if index is None or index < 0 or index >= len(items):
        raise ValidationError(f"Item {name} out of range: {index}")
    return index


def update_item(items: List[dict], index: int, details: Dict[str, Any]) -> List[dict]:
    """Replace the given fields of one item; unspecified fields are kept."""
    _check_index(items, index)
    result = copy.deepcopy(items)
    merged = {**result[index], **{k: v for k, v in details.items() if v is not None}}
    result[index] = normalize_item(merged)
    return result


def insert_item(items: List[dict], index: Optional[int], item: Dict[str, Any]) -> List[dict]:
    if len(items) >= MAX_ITEMS:
        raise ValidationError(f"List cannot have more than {MAX_ITEMS} items")
    position = len(items) if index is None else index
    if position < 0 or position > len(items):
        raise ValidationError(f"Item index out of range: {index}")
    result = copy.deepcopy(items)
    result.insert(position, normalize_item(item))
    return result


def remove_item(items: List[dict], index: int) -> List[dict]:
    _check_index(items, index)
    result = copy.deepcopy(items)
    del result[index]
    return result


def move_item(items: List[dict], src: int, dst: int) -> List[dict]:
    """Move an item so that it ends up at position `dst`."""
    _check_index(items, src, "index")
    _check_index(items, dst, "target index")
    result = copy.deepcopy(items)
    result.insert(dst, result.pop(src))
    return result


def set_completed(items: List[dict], index: int, completed: bool) -> List[dict]:
    _check_index(items, index)
    result = copy.deepcopy(items)
    result[index]["completed"] = bool(completed)
    return result


def indent_item(items: List[dict], index: int) -> List[dict]:
    """
    Nest an item under the previous top-level item.

    Only one level of nesting exists, so the item's own children are
    appended to the new parent right after it.
    """
    _check_index(items, index)
    if index == 0:
        raise ValidationError("The first item cannot be indented")
    result = copy.deepcopy(items)
    item = result.pop(index)
    parent = result[index - 1]
    children = parent.setdefault("childItems", [])
    children.append({"title": item["title"], "tag": _first_tag(item)})
    children.extend(item.get("childItems") or [])
    return result


def outdent_item(items: List[dict], parent_index: int, child_index: int) -> List[dict]:
    """
    Lift a child item to a top-level item placed right after its parent.

    Siblings that followed the child move under the lifted item.
    """
    _check_index(items, parent_index, "parent index")
    children = items[parent_index].get("childItems") or []
    _check_index(children, child_index, "child index")
    if len(items) >= MAX_ITEMS:
        raise ValidationError(f"List cannot have more than {MAX_ITEMS} items")
    result = copy.deepcopy(items)
    siblings = result[parent_index]["childItems"]
    child = siblings[child_index]
    trailing = siblings[child_index + 1:]
    del siblings[child_index:]
    lifted = {
        "title": child["title"],
        "comment": None,
        "completed": False,
        "properties": [{"type": "text", "tag": None, "value": child["tag"]}] if child.get("tag") else [],
        "childItems": trailing,
    }
    result.insert(parent_index + 1, lifted)
    return result


def _first_tag(item: dict) -> Optional[str]:
    for prop in item.get("properties") or []:
        if prop.get("value"):
            return prop["value"]
    return None


def apply_operation(items: List[dict], op: str, **params) -> List[dict]:
    if op == "insert":
        return insert_item(items, params.get("index"), params.get("item") or {})
    if op == "remove":
        return remove_item(items, params.get("index"))
    if op == "move":
        return move_item(items, params.get("index"), params.get("to_index"))
    if op == "indent":
        return indent_item(items, params.get("index"))
    if op == "outdent":
        return outdent_item(items, params.get("parent_index"), params.get("child_index"))
    if op == "complete":
        completed = params.get("completed")
        return set_completed(items, params.get("index"), True if completed is None else completed)
    raise ValidationError(f"Unknown item operation: {op}")
