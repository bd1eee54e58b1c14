import re

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_RE.match(email) is not None


def is_valid_username(username: str) -> bool:
    return bool(username) and 3 <= len(username) <= 30 and USERNAME_RE.match(username) is not None
