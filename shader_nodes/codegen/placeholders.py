"""
Template placeholder substitution.

Node templates refer to their context through tokens:

    $input.<port>     input expression
    $output.<port>    output variable
    $param.<name>     parameter expression, uniform or literal
    $time             uTime
    $resolution       uResolution
    $p                aspect-corrected coordinate declared in main()

All substitutions use word boundaries, so ``$input.in`` never rewrites the
front of ``$input.intensity``.
"""

import re
from typing import Callable, Dict, Mapping, Set

PARAM_TOKEN = re.compile(r"\$param\.(\w+)(\[[^\]]*\])?")
VARIABLE_TOKEN = re.compile(r"\bnode_[a-zA-Z0-9_]+_[a-zA-Z0-9_]+\b")


def _sub(pattern: str, replacement: str, code: str) -> str:
    # Callable replacement keeps backslashes in GLSL text literal
    return re.sub(pattern, lambda _m: replacement, code)


def replace_ports(code: str, kind: str, mapping: Mapping[str, str]) -> str:
    """Replace $<kind>.<port> tokens ('input' or 'output')."""
    for name, expr in mapping.items():
        code = _sub(r"\$" + kind + r"\." + re.escape(name) + r"\b", expr, code)
    return code


def replace_param(code: str, name: str, expr: str) -> str:
    return _sub(r"\$param\." + re.escape(name) + r"\b", expr, code)


def replace_array_param(code: str, name: str, array_name: str) -> str:
    """$param.<name>[i] -> array_...[i] and bare $param.<name> -> array_..."""
    code = re.sub(
        r"\$param\." + re.escape(name) + r"\[([^\]]+)\]",
        lambda m: f"{array_name}[{m.group(1)}]",
        code,
    )
    return _sub(r"\$param\." + re.escape(name) + r"\b", array_name, code)


def replace_globals(code: str) -> str:
    code = _sub(r"\$time\b", "uTime", code)
    code = _sub(r"\$resolution\b", "uResolution", code)
    code = _sub(r"\$p\b", "p", code)
    return code


def resolve_remaining_params(code: str, resolver: Callable[[str], str]) -> str:
    """
    Final pass: rewrite every $param token still present. An indexed
    reference is replaced as a whole, index included.
    """
    return PARAM_TOKEN.sub(lambda m: resolver(m.group(1)), code)


def rename_calls(code: str, renames: Dict[str, str]) -> str:
    """Rewrite calls `name(` to `renames[name](`."""
    for original, renamed in renames.items():
        code = re.sub(r"\b" + re.escape(original) + r"\s*\(", lambda _m, r=renamed: f"{r}(", code)
    return code


def repair_undeclared_variables(code: str, declared: Set[str], on_repair=None) -> str:
    """
    Replace generated-variable tokens that are not declared with 0.0.

    `on_repair` is called once per distinct undeclared name.
    """
    missing = sorted({m.group(0) for m in VARIABLE_TOKEN.finditer(code)} - set(declared))
    for name in missing:
        if on_repair is not None:
            on_repair(name)
        code = _sub(r"\b" + re.escape(name) + r"\b", "0.0", code)
    return code
