from typing import Any, Mapping, Sequence

_NULL_TOKENS = {"null", "none", "~"}


def normalize_null_strings(obj: Any) -> Any:
    """Recursively turn placeholder null strings (``null``, ``None``, ``~``) into None.

    Manifests and filter payloads edited by hand tend to carry these instead
    of real YAML nulls.
    """
    if isinstance(obj, str):
        return None if obj.strip().lower() in _NULL_TOKENS else obj
    if isinstance(obj, Mapping):
        return {k: normalize_null_strings(v) for k, v in obj.items()}
    if isinstance(obj, Sequence) and not isinstance(obj, (str, bytes)):
        return [normalize_null_strings(v) for v in obj]
    return obj
