# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import base64
import json
import re


def object_from_url_safe(data: str) -> dict | str | list:
    """Load an JSON object from an url safe base64 encoded string. Adds padding as needed."""
    return json.loads(base64.urlsafe_b64decode(add_padding(data)))


def remove_padding(base64_encoded: str) -> str:
    """Remove padding form b64 encoded string"""
    return base64_encoded.rstrip('=')


def add_padding(base64_encoded: str) -> str:
    """Add padding (=) for b64 encoded string, so it can be decoded"""
    return f'{base64_encoded}==='


def parse_status_list_index(value: str | int) -> int:
    """
    Parses a statusListIndex, which is transported as a string of decimal digits.
    Throws ValueError for anything which is not a non-negative integer.
    """
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not a valid status list index")
    if isinstance(value, int):
        index = value
    elif isinstance(value, str) and re.fullmatch(r"[0-9]+", value):
        index = int(value)
    else:
        raise ValueError(f"{value!r} is not a valid status list index")
    if index < 0:
        raise ValueError(f"{value!r} is not a valid status list index")
    return index


def interpret_as_bool(boolify: str) -> bool:
    """
    Converts an inpput to an boolean according to commonly used patterns.
    """
    if isinstance(boolify, bool):
        return boolify
    if isinstance(boolify, int):
        return boolify > 0
    elif isinstance(boolify, str):
        return re.match(r"^(y|yes|1|true)$", boolify, re.IGNORECASE | re.MULTILINE) is not None
    raise Exception(f"Can't boolify a {boolify}.")
