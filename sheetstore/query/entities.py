"""
Entity Configuration Registry

Maps each entity to its collection (sheet tab) and declares its
relationships. Relationships are plain descriptors; the hydrator reads the
declared kind and key pair and never guesses join columns.
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

HAS_ONE = "has_one"
HAS_MANY = "has_many"
BELONGS_TO = "belongs_to"

RELATIONSHIP_TYPES = (HAS_ONE, HAS_MANY, BELONGS_TO)


@dataclass(frozen=True)
class RelationshipDef:
    """Defines how one entity relates to another."""
    type: str  # has_one, has_many, belongs_to
    target_entity: str
    local_key: str  # Column on this entity
    target_key: str  # Column on target entity

    def __post_init__(self):
        if self.type not in RELATIONSHIP_TYPES:
            raise ValueError(
                f"Unknown relationship type '{self.type}'. Valid types: {', '.join(RELATIONSHIP_TYPES)}"
            )

    @property
    def is_many(self) -> bool:
        return self.type == HAS_MANY


def has_one(target_entity: str, foreign_key: str, local_key: str = "id") -> RelationshipDef:
    """Target rows carry `foreign_key` pointing at this entity's `local_key`; at most one per parent."""
    return RelationshipDef(type=HAS_ONE, target_entity=target_entity, local_key=local_key, target_key=foreign_key)


def has_many(target_entity: str, foreign_key: str, local_key: str = "id") -> RelationshipDef:
    """Target rows carry `foreign_key` pointing at this entity's `local_key`."""
    return RelationshipDef(type=HAS_MANY, target_entity=target_entity, local_key=local_key, target_key=foreign_key)


def belongs_to(target_entity: str, foreign_key: str, owner_key: str = "id") -> RelationshipDef:
    """This entity carries `foreign_key` pointing at the target's `owner_key`."""
    return RelationshipDef(type=BELONGS_TO, target_entity=target_entity, local_key=foreign_key, target_key=owner_key)


@dataclass
class EntityConfig:
    """Complete configuration for a queryable entity."""
    collection: str
    relationships: Dict[str, RelationshipDef] = field(default_factory=dict)
    primary_key: str = "id"
    timestamps: bool = False  # Stamp created_at / updated_at on writes


EntityRegistry = Mapping[str, EntityConfig]


# =============================================================================
# Entity Registry
# =============================================================================

ENTITIES: Dict[str, EntityConfig] = {
    "users": EntityConfig(
        collection="users",
        relationships={
            "department": belongs_to("departments", "department_id"),
            "role": belongs_to("roles", "role_id"),
        },
        timestamps=True,
    ),

    "departments": EntityConfig(
        collection="departments",
        relationships={
            "users": has_many("users", "department_id"),
        },
    ),

    "roles": EntityConfig(
        collection="roles",
        relationships={
            "users": has_many("users", "role_id"),
        },
    ),
}


def get_entity_config(entity_name: str, entities: Optional[EntityRegistry] = None) -> Optional[EntityConfig]:
    """Get entity config by name, or None if not found."""
    return (ENTITIES if entities is None else entities).get(entity_name)


def get_entity_names(entities: Optional[EntityRegistry] = None) -> list[str]:
    """Get list of all registered entity names."""
    return list(ENTITIES if entities is None else entities)
