"""
Input Validators

Normalizes relation declarations passed to with_() and validates builder
input, returning helpful error messages with valid relation/operator
suggestions.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .comparator import OPERATORS
from .entities import EntityConfig


@dataclass(frozen=True)
class RelationSpec:
    """One requested relation plus the relations to load on its rows."""
    name: str
    nested: Any = None


def normalize_relations(relations: Any) -> List[RelationSpec]:
    """
    Flatten a relation declaration into RelationSpecs, in declaration order.

    Accepts:
    - "department"
    - ["department", "role"]
    - {"posts": ["comments"]}
    - ["department", {"posts": "comments"}]
    """
    if relations is None:
        return []
    if isinstance(relations, str):
        return [RelationSpec(relations)]
    if isinstance(relations, Mapping):
        return [RelationSpec(_relation_name(name), nested) for name, nested in relations.items()]
    if isinstance(relations, (list, tuple)):
        specs: List[RelationSpec] = []
        for item in relations:
            if isinstance(item, str):
                specs.append(RelationSpec(item))
            elif isinstance(item, Mapping):
                specs.extend(normalize_relations(item))
            else:
                raise ValueError(
                    f"Invalid relation declaration {item!r}: expected a name or a mapping of name to nested relations"
                )
        return specs
    raise ValueError(
        f"Invalid relation declaration {relations!r}: expected a name, a list, or a mapping"
    )


def _relation_name(name: Any) -> str:
    if not isinstance(name, str):
        raise ValueError(f"Relation names must be strings, got {name!r}")
    return name


def _error(code: str, path: str, message: str, **extra) -> dict:
    """Build a structured validation error."""
    err = {"code": code, "path": path, "message": message}
    err.update(extra)
    return err


def validate_operator(operator: Any) -> Optional[dict]:
    """Unknown operators are legal (they compare as equality); this only reports them."""
    if operator in OPERATORS:
        return None
    return _error(
        "UNKNOWN_OPERATOR", "operator",
        f"Operator '{operator}' is not recognised and will compare as equality",
        validOperators=sorted(OPERATORS),
    )


def validate_relations(entity_name: str, entity_config: EntityConfig, relations: Any) -> Optional[dict]:
    """
    Validate relation names against an entity's declared relationships.
    Nested declarations are not followed. Returns error dict if invalid, None if valid.
    """
    errors = []
    try:
        specs = normalize_relations(relations)
    except ValueError as e:
        return {"error": True, "code": "VALIDATION_ERROR",
                "errors": [_error("INVALID_RELATION", "with", str(e))]}

    for spec in specs:
        if spec.name not in entity_config.relationships:
            errors.append(_error(
                "UNKNOWN_RELATION", f"with.{spec.name}",
                f"Unknown relation '{spec.name}' on entity '{entity_name}'",
                validRelations=list(entity_config.relationships.keys()),
            ))

    if errors:
        return {"error": True, "code": "VALIDATION_ERROR", "errors": errors}
    return None


def validate_non_negative(name: str, value: Any) -> int:
    """Coerce a limit/offset style argument, rejecting negatives."""
    if isinstance(value, bool) or not isinstance(value, int):
        try:
            value = int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{name} must be an integer, got {value!r}") from e
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value
