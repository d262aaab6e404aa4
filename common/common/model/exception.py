# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from pydantic import BaseModel


class HTTPError(BaseModel):
    """
    Body of error responses
    """

    detail: str
    error: str | None = None
    """Machine readable error code, set for status list errors"""
