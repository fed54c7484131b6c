# custody/core/canon.py
import math
from typing import Any

try:
    import jcs
except ImportError:
    raise ImportError("Please install jcs: pip install jcs")

from custody.core.errors import CanonicalizationError


def _check_tree(obj: Any, path: str, active: set) -> None:
    """Reject cycles, non-string keys and non-finite floats before encoding."""
    if isinstance(obj, float) and not math.isfinite(obj):
        raise CanonicalizationError(f"Non-finite number at {path}", path=path)
    if isinstance(obj, (dict, list, tuple)):
        marker = id(obj)
        if marker in active:
            raise CanonicalizationError(f"Circular reference detected at {path}", path=path)
        active.add(marker)
        if isinstance(obj, dict):
            for key, value in obj.items():
                if not isinstance(key, str):
                    raise CanonicalizationError(
                        f"Object keys must be strings, got {type(key).__name__} at {path}", path=path
                    )
                _check_tree(value, f"{path}.{key}", active)
        else:
            for i, value in enumerate(obj):
                _check_tree(value, f"{path}[{i}]", active)
        active.discard(marker)


def canonical_json(obj: Any) -> bytes:
    """
    Produce deterministic UTF-8 bytes according to RFC 8785 (JSON Canonicalization Scheme).

    Object keys are sorted at every nesting level, arrays keep their order and
    no whitespace is emitted. Returns bytes ready for hashing or signing.
    """
    try:
        _check_tree(obj, "$", set())
        return jcs.canonicalize(obj)
    except RecursionError as e:
        raise CanonicalizationError("Value is nested too deeply to encode") from e
    except (TypeError, ValueError, OverflowError) as e:
        raise CanonicalizationError(f"Value is not JSON-serializable: {e}") from e


def canonical_json_str(obj: Any) -> str:
    """Same as above, but returns string (mostly for debugging)."""
    return canonical_json(obj).decode("utf-8")
