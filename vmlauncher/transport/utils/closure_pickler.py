"""
Closure-aware pickling.

Standard pickle stores functions by reference (module + qualified name), which
fails for lambdas and nested functions. ``ClosurePickler`` keeps the reference
form whenever the function can be imported by name and otherwise stores it
by value: the marshalled code object, its captured cell values, defaults and
a description of the globals it runs against.

Functions stored by value are rebuilt in two steps, ``make_function_skeleton``
then ``restore_function_state``, so self-referencing closures work. The code
object format is interpreter specific, so both sides must run the same
Python version; envelopes carry that version and check it.
"""

from __future__ import annotations

import builtins
import importlib
import io
import marshal
import pickle
import sys
import types
from typing import Any

PICKLE_PROTOCOL = pickle.HIGHEST_PROTOCOL


class _EmptyCell:
    """Placeholder for a closure cell that has not been assigned yet."""

    def __reduce__(self) -> str:
        return "EMPTY_CELL"

    def __repr__(self) -> str:
        return "EMPTY_CELL"


EMPTY_CELL = _EmptyCell()


def is_importable(func: types.FunctionType) -> bool:
    """
    Check if a function can be pickled by reference.

    Args:
        func: Function to check.

    Returns:
        True if looking up ``func.__module__`` + ``func.__qualname__`` yields ``func``.
    """
    module_name = getattr(func, "__module__", None)
    if not module_name or module_name == "__main__" or "<locals>" in func.__qualname__:
        return False
    module = sys.modules.get(module_name)
    if module is None:
        return False

    obj: Any = module
    for part in func.__qualname__.split("."):
        obj = getattr(obj, part, None)
        if obj is None:
            return False
    return obj is func


def _referenced_names(code: types.CodeType) -> set[str]:
    names = set(code.co_names)
    for const in code.co_consts:
        if isinstance(const, types.CodeType):
            names |= _referenced_names(const)
    return names


def _globals_reference(func: types.FunctionType) -> str | None:
    module_name = func.__module__
    if module_name and module_name != "__main__" and module_name in sys.modules:
        return module_name
    return None


def _captured_globals(func: types.FunctionType) -> dict[str, Any]:
    # defined in __main__ or a module the worker cannot import:
    # ship the globals the code actually refers to
    return {
        name: func.__globals__[name]
        for name in sorted(_referenced_names(func.__code__))
        if name in func.__globals__
    }


def _function_state(func: types.FunctionType) -> dict[str, Any]:
    closure_values: tuple[Any, ...] | None = None
    if func.__closure__ is not None:
        values = []
        for cell in func.__closure__:
            try:
                values.append(cell.cell_contents)
            except ValueError:
                values.append(EMPTY_CELL)
        closure_values = tuple(values)

    return {
        "qualname": func.__qualname__,
        "defaults": func.__defaults__,
        "kwdefaults": func.__kwdefaults__,
        "closure_values": closure_values,
        "globals": None if _globals_reference(func) else _captured_globals(func),
        "attributes": dict(func.__dict__) or None,
    }


def make_function_skeleton(
    code_bytes: bytes, module_name: str | None, name: str, closure_size: int
) -> types.FunctionType:
    """
    Recreate a function stored by value, without its state.

    Cells start empty and captured globals are missing until
    ``restore_function_state`` runs. Splitting the two lets a function that
    captures itself (recursion through a closure cell) be unpickled.
    """
    code = marshal.loads(code_bytes)
    if module_name is not None:
        func_globals = importlib.import_module(module_name).__dict__
    else:
        func_globals = {"__builtins__": builtins}

    closure = tuple(types.CellType() for _ in range(closure_size)) if closure_size else None
    return types.FunctionType(code, func_globals, name, None, closure)


def restore_function_state(func: types.FunctionType, state: dict[str, Any]) -> None:
    """Fill in the state of a function created by ``make_function_skeleton``."""
    func.__qualname__ = state["qualname"]
    func.__defaults__ = state["defaults"]
    func.__kwdefaults__ = state["kwdefaults"]
    if state["globals"]:
        func.__globals__.update(state["globals"])
    if state["closure_values"] is not None:
        for cell, value in zip(func.__closure__ or (), state["closure_values"], strict=True):
            if value is not EMPTY_CELL:
                cell.cell_contents = value
    if state["attributes"]:
        func.__dict__.update(state["attributes"])


def _import_module(name: str) -> types.ModuleType:
    return importlib.import_module(name)


class ClosurePickler(pickle.Pickler):
    """Pickler that stores non-importable functions by value and modules by name."""

    def reducer_override(self, obj: Any) -> Any:
        if isinstance(obj, types.FunctionType) and not is_importable(obj):
            skeleton_args = (
                marshal.dumps(obj.__code__),
                _globals_reference(obj),
                obj.__name__,
                len(obj.__closure__ or ()),
            )
            return (
                make_function_skeleton,
                skeleton_args,
                _function_state(obj),
                None,
                None,
                restore_function_state,
            )
        if isinstance(obj, types.ModuleType):
            return _import_module, (obj.__name__,)
        return NotImplemented


def dumps(obj: Any) -> bytes:
    """Pickle ``obj`` with ``ClosurePickler``."""
    buffer = io.BytesIO()
    ClosurePickler(buffer, protocol=PICKLE_PROTOCOL).dump(obj)
    return buffer.getvalue()
