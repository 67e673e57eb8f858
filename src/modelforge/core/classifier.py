from collections.abc import Sequence

from modelforge.config import DEFAULT_ROLE_KEYWORDS
from modelforge.errors import ClassificationAmbiguity
from modelforge.models import Role

_SUFFIX_ROLES: tuple[tuple[str, Role], ...] = (
    ("Req", Role.API_CONTRACT),
    ("Res", Role.API_CONTRACT),
    ("Event", Role.PUSH_EVENT),
)


def classify(
    lineage: Sequence[str],
    keywords: Sequence[tuple[str, Role]] = DEFAULT_ROLE_KEYWORDS,
) -> Role:
    """Map a directory lineage to a role.

    Each keyword is a case-insensitive substring match against the joined
    lineage string, so ``user_api`` and ``api_v2`` are both API directories.
    A lineage matching keywords of more than one distinct role raises
    ``ClassificationAmbiguity``; no match yields ``Role.UNCLASSIFIED``.
    """
    accumulated = "/".join(lineage).lower()
    matched: list[Role] = []
    for keyword, role in keywords:
        if keyword.lower() in accumulated and role not in matched:
            matched.append(role)

    if len(matched) > 1:
        raise ClassificationAmbiguity(tuple(lineage), [str(role) for role in matched])
    return matched[0] if matched else Role.UNCLASSIFIED


def classify_declaration(
    lineage: Sequence[str],
    name: str,
    keywords: Sequence[tuple[str, Role]] = DEFAULT_ROLE_KEYWORDS,
) -> Role:
    role = classify(lineage, keywords)
    if role != Role.UNCLASSIFIED:
        return role
    return classify_name(name)


def classify_name(name: str) -> Role:
    """Fallback for declarations whose directory lineage says nothing."""
    for suffix, suffix_role in _SUFFIX_ROLES:
        if name.endswith(suffix) and name != suffix:
            return suffix_role
    return Role.UNCLASSIFIED
