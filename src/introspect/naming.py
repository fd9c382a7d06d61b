"""Type naming for inferred composites.

This module builds composite type names from the singular facet name
and the capitalized field path.
"""

from __future__ import annotations

from typing import Sequence

import inflect

_INFLECT = inflect.engine()


def capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def facet_type_name(facet: str, singularize: bool = True) -> str:
    """Return the root type name of a facet, e.g. ``orders`` -> ``Order``."""
    if not singularize:
        return capitalize(facet)
    singular = _INFLECT.singular_noun(facet)
    return capitalize(singular if singular else facet)


def composite_type_name(facet: str, path: Sequence[str], singularize: bool = True) -> str:
    """Return the composite name for a nested map at ``path`` inside a facet."""
    return facet_type_name(facet, singularize) + "".join(capitalize(part) for part in path)
