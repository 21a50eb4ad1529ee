"""
services/json_tree.py – Total accessors over loosely-typed JSON documents.

Backend documents are plain ``json`` values (dict / list / str / numbers).
Every helper here returns None or an empty list on a missing key, a wrong
type or an out-of-range index; none of them raise.
"""

from typing import Any, List, Optional, Union

PathPart = Union[str, int]


def _split(path: Union[str, List[PathPart]]) -> List[PathPart]:
    if isinstance(path, str):
        return [p for p in path.split(".") if p]
    return list(path)


def dig(node: Any, path: Union[str, List[PathPart]]) -> Any:
    """
    Follow *path* ("a.b.c" or a list of keys / indices) through *node*.

    Returns None as soon as a step cannot be taken.
    """
    current = node
    for part in _split(path):
        if isinstance(part, int):
            if not isinstance(current, list) or not -len(current) <= part < len(current):
                return None
            current = current[part]
        elif isinstance(current, dict):
            current = current.get(part)
        else:
            return None
        if current is None:
            return None
    return current


def dig_str(node: Any, path: Union[str, List[PathPart]]) -> Optional[str]:
    value = dig(node, path)
    return value if isinstance(value, str) else None


def dig_list(node: Any, path: Union[str, List[PathPart]]) -> List[Any]:
    value = dig(node, path)
    return value if isinstance(value, list) else []
