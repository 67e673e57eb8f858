"""Tests for role-qualified type names."""

import pytest

from modelforge.emitters.naming import TypeNamespace
from modelforge.models import Role


class TestTypeNamespace:
    def test_unique_names_stay_plain(self) -> None:
        namespace = TypeNamespace([(Role.API_CONTRACT, "Item"), (Role.ENTITY, "Listing")])

        assert namespace.public_name((Role.API_CONTRACT, "Item")) == "Item"
        assert namespace.public_name((Role.ENTITY, "Listing")) == "Listing"

    def test_shared_names_are_role_qualified(self) -> None:
        namespace = TypeNamespace([(Role.API_CONTRACT, "Item"), (Role.ENTITY, "Item")])

        assert namespace.public_name((Role.API_CONTRACT, "Item")) == "ApiContractItem"
        assert namespace.public_name((Role.ENTITY, "Item")) == "EntityItem"

    def test_resolve_prefers_the_referrer_role(self) -> None:
        namespace = TypeNamespace([(Role.API_CONTRACT, "Item"), (Role.ENTITY, "Item")])

        assert namespace.resolve("Item", prefer_role=Role.ENTITY) == (Role.ENTITY, "Item")
        assert namespace.resolve("Item", prefer_role=Role.API_CONTRACT) == (Role.API_CONTRACT, "Item")
        assert namespace.resolve("Missing") is None

    def test_renames_cover_references(self) -> None:
        namespace = TypeNamespace([(Role.ENTITY, "Item"), (Role.API_CONTRACT, "Item"), (Role.ENTITY, "Listing")])

        renames = namespace.renames((Role.ENTITY, "Listing"), ["Item", "Unknown"])

        assert renames == {"Listing": "Listing", "Item": "EntityItem"}

    def test_qualified_name_clashing_with_declared_name_fails(self) -> None:
        with pytest.raises(ValueError, match="EntityItem"):
            TypeNamespace([(Role.API_CONTRACT, "Item"), (Role.ENTITY, "Item"), (Role.API_CONTRACT, "EntityItem")])
