ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_PLAYER = "player"

ROLE_VALUES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_PLAYER)


def normalize_role(value: str | None) -> str:
    if not value:
        return ROLE_PLAYER
    normalized = value.strip().lower()
    return normalized if normalized in ROLE_VALUES else ROLE_PLAYER


def has_any_role(role: str | None, allowed: tuple[str, ...]) -> bool:
    return normalize_role(role) in allowed
