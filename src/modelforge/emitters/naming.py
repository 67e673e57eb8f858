"""Public type names for artifacts that hold several roles in one namespace.

Declaration names are unique per role only. A name declared under more than
one role is qualified with the role (``ApiContractItem``, ``EntityItem``);
every other type keeps its declared name.
"""

from collections import Counter
from collections.abc import Iterable, Iterator

from modelforge.models import Role

TypeKey = tuple[Role, str]


class TypeNamespace:
    def __init__(self, keys: Iterable[TypeKey]) -> None:
        self._keys = list(dict.fromkeys(keys))
        roles_per_name = Counter(name for _, name in self._keys)
        self._public = {
            key: key[1] if roles_per_name[key[1]] == 1 else f"{key[0]}{key[1]}" for key in self._keys
        }
        clashes = Counter(self._public.values())
        duplicated = sorted(name for name, count in clashes.items() if count > 1)
        if duplicated:
            raise ValueError(f"Qualified type names collide with declared ones: {', '.join(duplicated)}")

    def __contains__(self, key: object) -> bool:
        return key in self._public

    def __iter__(self) -> Iterator[TypeKey]:
        return iter(self._keys)

    def public_name(self, key: TypeKey) -> str:
        return self._public[key]

    def resolve(self, name: str, prefer_role: Role | None = None) -> TypeKey | None:
        """Key of the type ``name`` refers to, preferring the referrer's own role."""
        candidates = [key for key in self._keys if key[1] == name]
        for key in candidates:
            if key[0] == prefer_role:
                return key
        return candidates[0] if candidates else None

    def renames(self, key: TypeKey, references: Iterable[str]) -> dict[str, str]:
        """Declared name -> public name for a type and everything it references."""
        names = {key[1]: self._public[key]}
        for reference in references:
            target = self.resolve(reference, prefer_role=key[0])
            if target is not None:
                names[reference] = self._public[target]
        return names
