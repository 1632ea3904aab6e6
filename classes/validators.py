# validators.py
import re

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_length(field_name, value, max_length):
    if len(value) > max_length:
        raise ValueError(f"{field_name} must be {max_length} characters or fewer.")

def validate_role(role, allowed=("Student", "Teacher", "Admin")):
    if role not in allowed:
        raise ValueError(f"Role must be one of: {', '.join(allowed)}.")

def validate_email(email):
    if email and not EMAIL_PATTERN.match(email):
        raise ValueError("Email address is not valid.")

def validate_password(password):
    if not password or len(password) < 6:
        raise ValueError("Password must be at least 6 characters.")
