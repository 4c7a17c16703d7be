import re

_USER_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

def is_valid_user_id(user_id: str) -> bool:
    return bool(user_id) and bool(_USER_ID_RE.match(user_id))

def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))

def is_valid_date(date_str: str) -> bool:
    """YYYY-MM или YYYY-MM-DD (даты учебы и работы)"""
    return bool(re.match(r"^\d{4}-\d{2}(-\d{2})?$", date_str or ""))

def clean_form_payload(form) -> dict:
    """Поля формы без служебных ключей и пустых значений"""
    return {
        key: value.strip() if isinstance(value, str) else value
        for key, value in form.items()
        if not key.startswith("_") and value not in (None, "")
        and not (isinstance(value, str) and not value.strip())
    }
