"""Flatten structured Puppet facts into dotted paths."""


def flatten_facts(facts, prefix=""):
    """{"os": {"family": "RedHat"}} -> {"os.family": "RedHat"}. List items use their index."""
    flat = {}
    for key, value in (facts or {}).items():
        path = f"{prefix}.{key}" if prefix else str(key)
        flat.update(_flatten_value(value, path))
    return flat


def _flatten_value(value, path):
    if isinstance(value, dict):
        return flatten_facts(value, path)
    if isinstance(value, list):
        flat = {}
        for i, item in enumerate(value):
            flat.update(_flatten_value(item, f"{path}.{i}"))
        return flat
    return {path: value}
