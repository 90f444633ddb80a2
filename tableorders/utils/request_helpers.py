"""Helpers for reading JSON bodies and query arguments in blueprints."""
from flask import request

from tableorders.exceptions import InvalidInputError


def json_body():
    """Request JSON as a dict; anything else is InvalidInputError."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInputError('body', 'Request body must be a JSON object')
    return data


def int_arg(name, default=None):
    """Optional integer query argument."""
    value = request.args.get(name)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidInputError(name, f"'{name}' must be an integer")


def bool_arg(name, default=False):
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'on')
