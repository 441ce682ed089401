"""
Dotted field-path matching.
"""

PATH_SEPARATOR = "."
WILDCARD = "*"


def path_matches(field: str, path: str) -> bool:
    """
    Check whether allowlisted ``field`` covers ``path``.

    Matching compares dotted segments, so ``author`` covers ``author.name``
    but not ``author_id``; ``*`` matches any single segment and a trailing
    ``*`` covers everything below it.
    """
    field_parts = field.split(PATH_SEPARATOR)
    path_parts = path.split(PATH_SEPARATOR)

    if len(field_parts) > len(path_parts):
        return False

    for wanted, actual in zip(field_parts, path_parts):
        if wanted != WILDCARD and wanted != actual:
            return False
    return True
