# app/services/diff_service.py
"""
Diff entre snapshots.

ChangeSet = {ruta: {"from": viejo, "to": nuevo}}; las rutas son claves
separadas por puntos con índices de lista en decimal ("blocks.0.title").
Puntos y barras invertidas dentro de una clave se escapan con barra
invertida; una clave que sólo tiene dígitos lleva una barra invertida
delante para distinguirla de un índice de lista.
Claves añadidas o eliminadas llevan además "kind": "added" / "removed".
Las listas se comparan por posición: reordenar una lista se reporta como
cambios índice por índice.
"""
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Union

ChangeSet = Dict[str, Dict[str, Any]]
Segment = Union[str, int]

ADDED = "added"
REMOVED = "removed"


# -------- Rutas --------
def _escape(segment: str) -> str:
    out = segment.replace("\\", "\\\\").replace(".", "\\.")
    # clave de dict sólo con dígitos: "\0" para no confundirla con el índice 0
    return "\\" + out if out.isdigit() else out


def join_path(segments: List[Segment]) -> str:
    return ".".join(str(s) if isinstance(s, int) else _escape(s) for s in segments)


def _segment(chars: List[str], escaped: bool) -> Segment:
    text = "".join(chars)
    return int(text) if text.isdigit() and not escaped else text


def split_path(path: str) -> List[Segment]:
    """Inverso de join_path: índices de lista como int, claves como str."""
    out: List[Segment] = []
    buf: List[str] = []
    escaped = False
    it = iter(path)
    for ch in it:
        if ch == "\\":
            buf.append(next(it, ""))
            escaped = True
        elif ch == ".":
            out.append(_segment(buf, escaped))
            buf, escaped = [], False
        else:
            buf.append(ch)
    out.append(_segment(buf, escaped))
    return out


# -------- Diff --------
def _is_container(v: Any) -> bool:
    return isinstance(v, (dict, list))


def _same_kind(a: Any, b: Any) -> bool:
    return (isinstance(a, dict) and isinstance(b, dict)) or (isinstance(a, list) and isinstance(b, list))


def _leaves(value: Any, segments: List[Segment], out: ChangeSet, kind: str) -> None:
    if isinstance(value, dict) and value:
        for k, v in value.items():
            _leaves(v, segments + [k], out, kind)
    elif isinstance(value, list) and value:
        for i, v in enumerate(value):
            _leaves(v, segments + [i], out, kind)
    elif kind == ADDED:
        out[join_path(segments)] = {"from": None, "to": value, "kind": ADDED}
    else:
        out[join_path(segments)] = {"from": value, "to": None, "kind": REMOVED}


def _walk(old: Any, new: Any, segments: List[Segment], out: ChangeSet) -> None:
    if _same_kind(old, new):
        if isinstance(old, dict):
            for k in sorted(set(old) | set(new)):
                if k not in new:
                    out[join_path(segments + [k])] = {"from": old[k], "to": None, "kind": REMOVED}
                elif k not in old:
                    out[join_path(segments + [k])] = {"from": None, "to": new[k], "kind": ADDED}
                else:
                    _walk(old[k], new[k], segments + [k], out)
        else:
            for i in range(max(len(old), len(new))):
                if i >= len(new):
                    out[join_path(segments + [i])] = {"from": old[i], "to": None, "kind": REMOVED}
                elif i >= len(old):
                    out[join_path(segments + [i])] = {"from": None, "to": new[i], "kind": ADDED}
                else:
                    _walk(old[i], new[i], segments + [i], out)
        return
    # bool vs int: True == 1 en Python, pero son valores distintos en JSON
    if old != new or type(old) is not type(new):
        out[join_path(segments)] = {"from": old, "to": new}


def diff(previous: Optional[Dict[str, Any]], current: Dict[str, Any]) -> ChangeSet:
    """
    Cambios mínimos de ``previous`` a ``current``. Sin ``previous`` cada hoja
    de ``current`` se reporta como añadida. Snapshots iguales -> {}.
    """
    out: ChangeSet = {}
    if previous is None:
        for k in sorted(current):
            _leaves(current[k], [k], out, ADDED)
        return out
    _walk(previous, current, [], out)
    return out


def _container_for(segment: Segment) -> Any:
    return [] if isinstance(segment, int) else {}


def _set_path(doc: Dict[str, Any], segments: List[Segment], value: Any) -> None:
    node: Any = doc
    for seg, nxt in zip(segments, segments[1:]):
        # hoja añadida bajo un contenedor que no existía en la base
        if isinstance(node, list) and seg == len(node):
            node.append(_container_for(nxt))
        elif isinstance(node, dict) and seg not in node:
            node[seg] = _container_for(nxt)
        node = node[seg]
    last = segments[-1]
    if isinstance(node, list) and last == len(node):
        node.append(value)
    else:
        node[last] = value


def _del_path(doc: Dict[str, Any], segments: List[Segment]) -> None:
    node: Any = doc
    for seg in segments[:-1]:
        node = node[seg]
    last = segments[-1]
    if isinstance(node, list):
        node.pop(last)
    else:
        node.pop(last, None)


def _order_key(path: str):
    return [(0, s, "") if isinstance(s, int) else (1, 0, s) for s in split_path(path)]


def apply_changes(base: Optional[Dict[str, Any]], changes: ChangeSet) -> Dict[str, Any]:
    """
    Aplica un ChangeSet sobre ``base`` (copia). Para todo par A, B:
    ``apply_changes(A, diff(A, B)) == B``.
    """
    doc: Dict[str, Any] = copy.deepcopy(base) if base is not None else {}
    removals = [p for p, c in changes.items() if c.get("kind") == REMOVED]
    updates = [p for p, c in changes.items() if c.get("kind") != REMOVED]

    for path in sorted(updates, key=_order_key):
        _set_path(doc, split_path(path), copy.deepcopy(changes[path]["to"]))
    # índices de lista de mayor a menor para no desplazar los pendientes
    for path in sorted(removals, key=_order_key, reverse=True):
        _del_path(doc, split_path(path))
    return doc


def compare_revisions(first, second) -> ChangeSet:
    """Diff entre el ``data`` de dos revisiones (de ``first`` hacia ``second``)."""
    return diff(first.data or {}, second.data or {})
