# shelter/matches/profiles.py
DEFAULT_NICKNAME = "guest"
DEFAULT_PROFILE = "..."
DEFAULT_USER_ICON_URL = "/static/icons/default.png"

NICKNAME_MAX = 40
PROFILE_MAX = 120
ICON_MAX = 200_000


def _clip(value, limit: int) -> str:
    if value is None:
        return ""
    return str(value).strip()[:limit]


def sanitize_profile(raw) -> dict:
    """표시용 프로필 스냅샷. 길이 제한 + 빈 값은 기본값."""
    if not isinstance(raw, dict):
        raw = {}
    return {
        "nickname": _clip(raw.get("nickname"), NICKNAME_MAX) or DEFAULT_NICKNAME,
        "profile": _clip(raw.get("profile"), PROFILE_MAX) or DEFAULT_PROFILE,
        "icon": _clip(raw.get("icon"), ICON_MAX) or DEFAULT_USER_ICON_URL,
    }
