"""
Godot text resource value literals

    None                 null
    True / False         true / false
    5, 5.0, 0.25         5, 5, 0.25
    "a \"b\""            "a \"b\""
    [1, "a"]             [1, "a"]
    {"k": 1}             {
                         "k": 1
                         }
    Vector2(5, 5) etc.   their own to_godot()
"""

from typing import Any, Iterable, Mapping

from ..errors import ExportError
from ..model.values import format_number


def quote(text: str) -> str:
    escaped = (text.replace('\\', '\\\\')
                   .replace('"', '\\"')
                   .replace('\n', '\\n'))
    return f'"{escaped}"'


def render_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, (bool, int, float)):
        return format_number(value)
    if isinstance(value, str):
        return quote(value)
    if hasattr(value, 'to_godot'):
        return value.to_godot()
    if isinstance(value, (list, tuple)):
        return f"[{', '.join(render_value(item) for item in value)}]"
    if isinstance(value, Mapping):
        return render_dictionary(value)
    raise ExportError(f"Can't write a {value.__class__.__name__} value to a Godot file")


def render_dictionary(values: Mapping[str, Any]) -> str:
    if not values:
        return "{}"
    entries = ",\n".join(f"{quote(str(key))}: {render_value(value)}"
                         for key, value in values.items())
    return "{\n" + entries + "\n}"


def render_groups(groups: Iterable[str]) -> str:
    return f"[{', '.join(quote(group) for group in groups)}]"


def render_property(key: str, value: Any) -> str:
    return f"{key} = {render_value(value)}"


def render_meta(meta: Mapping[str, Any]) -> str:
    return f"__meta__ = {render_dictionary(meta)}"
