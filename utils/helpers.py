import math
import uuid
from datetime import datetime, timezone

import bleach
from flask import request

ALLOWED_TAGS = ["b", "i", "u", "em", "strong", "p", "br", "ul", "ol", "li", "a", "code", "pre"]
ALLOWED_ATTRIBUTES = {"a": ["href", "title"]}

CHOICE_TYPES = ("multiple_choice", "checkboxes", "dropdown")


def format_datetime(datetime_obj):
    """Format datetime to a readable string."""
    if not datetime_obj:
        return None
    return datetime_obj.strftime('%Y-%m-%d %H:%M:%S')

def parse_datetime(value):
    """Parse an ISO 8601 value into a naive UTC datetime.

    Empty values give None. Raises ValueError for anything unparseable.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed

def sanitize_text(value):
    """Strip markup that isn't on the allow list."""
    if value is None:
        return ""
    return bleach.clean(str(value), tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True).strip()

def get_pagination(default_limit=20, max_limit=100):
    try:
        page = max(int(request.args.get("page", 1)), 1)
    except ValueError:
        page = 1
    try:
        limit = int(request.args.get("limit", default_limit))
    except ValueError:
        limit = default_limit
    limit = min(max(limit, 1), max_limit)
    return page, limit

def is_number(value):
    """True for finite ints and floats. Booleans and NaN don't count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)

def str_to_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")

def validate_questions(questions):
    """Validate form questions and fill in ids and ordering.

    Returns a new list; raises ValueError on the first bad question.
    """
    from models.forms import QUESTION_TYPES

    if not isinstance(questions, list):
        raise ValueError("Questions must be a list.")
    cleaned = []
    for index, question in enumerate(questions):
        if not isinstance(question, dict):
            raise ValueError("Each question must be a dictionary.")
        question = dict(question)
        qtype = question.get("type")
        if qtype not in QUESTION_TYPES:
            raise ValueError(f"Question {index + 1} has an unknown type '{qtype}'.")
        if not str(question.get("title") or "").strip():
            raise ValueError(f"Question {index + 1} needs a title.")

        if qtype in CHOICE_TYPES:
            options = question.get("options")
            if not isinstance(options, list) or not options:
                raise ValueError(f"Question {index + 1} needs a list of options.")
            correct = question.get("correct_answer")
            if correct not in (None, "", []):
                expected = correct if isinstance(correct, list) else [correct]
                if any(answer not in options for answer in expected):
                    raise ValueError(f"The correct answer for question {index + 1} must be one of the options.")

        if qtype == "matching_type":
            pairs = question.get("matching_pairs")
            if not isinstance(pairs, list) or not pairs:
                raise ValueError(f"Question {index + 1} needs matching pairs.")
            if any(not isinstance(p, dict) or "left" not in p or "right" not in p for p in pairs):
                raise ValueError(f"Matching pairs in question {index + 1} need 'left' and 'right'.")

        if qtype == "enumeration":
            answers = question.get("enumeration_answers") or []
            if not isinstance(answers, list):
                raise ValueError(f"Enumeration answers for question {index + 1} must be a list.")
            question.setdefault("expected_count", len(answers))

        if qtype == "linear_scale":
            question.setdefault("scale_min", 1)
            question.setdefault("scale_max", 5)

        try:
            points = float(question.get("points") or 0)
        except (TypeError, ValueError):
            raise ValueError(f"Points for question {index + 1} must be a number.")
        if points < 0:
            raise ValueError(f"Points for question {index + 1} can't be negative.")

        question["points"] = points
        question.setdefault("required", False)
        order = question.get("order")
        if order is None:
            order = index
        elif isinstance(order, bool):
            raise ValueError(f"Order for question {index + 1} must be a whole number.")
        else:
            try:
                order = int(str(order).strip())
            except ValueError:
                raise ValueError(f"Order for question {index + 1} must be a whole number.")
        question["order"] = order
        if not question.get("id"):
            question["id"] = uuid.uuid4().hex[:12]
        cleaned.append(question)
    return cleaned

def normalize_form_settings(settings, current=None):
    """Merge incoming form settings over the current ones.

    Date fields are validated and stored as ISO strings.
    """
    from models.forms import DEFAULT_FORM_SETTINGS

    if settings is None:
        settings = {}
    if not isinstance(settings, dict):
        raise ValueError("Settings must be an object.")
    merged = {**DEFAULT_FORM_SETTINGS, **(current or {})}
    for key, value in settings.items():
        if key not in DEFAULT_FORM_SETTINGS:
            continue
        if key in ("open_at", "close_at", "deadline"):
            parsed = parse_datetime(value)
            merged[key] = parsed.isoformat() if parsed else None
        elif key == "confirmation_message":
            merged[key] = str(value or DEFAULT_FORM_SETTINGS[key])
        else:
            merged[key] = str_to_bool(value)
    return merged
