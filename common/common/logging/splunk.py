# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Splunk compatible json log output.

Every record is written as a single json line. Records logged with a
`SplunkExtendedLogEntry` as message additionally carry the fields of the entry
as top level keys, so operations can be searched for by operation, step & status.
"""

import datetime
import logging
from enum import Enum

from pydantic import BaseModel
from pythonjsonlogger.json import JsonFormatter


class SplunkExtendedLogEntry(BaseModel):
    """Log message with additional, searchable fields."""

    message: str

    def extended_fields(self) -> dict:
        """All fields except the message, enums replaced by their value"""
        fields = {}
        for name, value in iter(self):
            if name == "message" or value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            elif not isinstance(value, (int, float, bool, str)):
                value = str(value)
            fields[name] = value
        return fields

    def __str__(self) -> str:
        extended = " ".join(f"{k}={v}" for k, v in self.extended_fields().items())
        return f"{self.message} {extended}" if extended else self.message


class SplunkFormatter(JsonFormatter):
    def __init__(self, defaults: dict | None = None) -> None:
        """
        defaults: values used if the record does not provide them, eg. app_name or correlation_id
        """
        super().__init__("%(levelname)s %(name)s %(message)s")
        self._fallbacks = defaults or {}

    def _timestamp(self, record: logging.LogRecord) -> str:
        # eg. 2024-02-07T14:38:19.565+01:00
        created = datetime.datetime.fromtimestamp(record.created).astimezone()
        return created.isoformat(timespec="milliseconds")

    def add_fields(self, log_data: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_data, record, message_dict)
        log_data["@timestamp"] = self._timestamp(record)
        log_data["level"] = log_data.pop("levelname")
        log_data["logger"] = log_data.pop("name")
        log_data["app"] = log_data.pop("app_name", None) or self._fallbacks.get("app_name")
        # set by the correlation id filter, if installed
        log_data["hash"] = log_data.pop("correlation_id", None) or self._fallbacks.get("correlation_id")
        if "exc_info" in log_data:
            log_data["exception"] = log_data.pop("exc_info")
        if isinstance(record.msg, SplunkExtendedLogEntry):
            log_data.update(record.msg.extended_fields())
