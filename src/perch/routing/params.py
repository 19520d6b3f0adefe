"""Path parameter converters.

Typed segments like ``{id:int}`` only match values of that shape. The
captured value is still handed to handlers as a string.
"""

# Regex for each supported converter
CONVERTERS: dict[str, str] = {
    "str": r"[^/]+",
    "int": r"\d+",
    "float": r"\d+(?:\.\d+)?",
    "path": r".+",
}
