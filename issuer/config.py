# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import os
import logging
from typing import Annotated
from functools import cache

import httpx

from fastapi import Depends

import common.config as conf
from common.status_list import DEFAULT_CAPACITY

_logger = logging.getLogger(__name__)

SELECTION_POLICIES = ("random", "least_occupied")


def _create_api_key_header(api_key: str | None) -> dict:
    return {"x-api-key": api_key} if api_key else {}


class IssuerConfig(conf.Config):
    def __init__(self):
        super().__init__()
        self.app_name = os.getenv("APP_NAME", "Status List Issuer")
        self.issuer_id = os.getenv("ISSUER_ID")
        """Issuer identity (eg. a DID) written into the status list credentials"""
        if not self.issuer_id:
            _logger.error("No issuer configured! Requires environment variable ISSUER_ID to be set to function correctly")

        # Status List
        self.revocation_url = os.getenv("REVOCATION_URL", f"{self.external_url or ''}/status-list").rstrip("/")
        """Base URI under which status lists are published; a list is found at {revocation_url}/{status_list_id}"""
        self.status_list_purpose = os.getenv("STATUS_LIST_PURPOSE", "revocation")
        self.status_list_capacity = int(os.getenv("STATUS_LIST_CAPACITY", DEFAULT_CAPACITY))
        """Number of bits of newly created status lists. Lists are never resized."""
        self.status_list_selection = os.getenv("STATUS_LIST_SELECTION", "random")
        """Policy for choosing the list of a new credential, one of random or least_occupied"""
        if self.status_list_selection not in SELECTION_POLICIES:
            raise ValueError(f"STATUS_LIST_SELECTION must be one of {SELECTION_POLICIES}, got {self.status_list_selection}")
        self.status_list_registry_url = os.getenv("STATUS_LIST_REGISTRY_URL")
        """Optional registry the signed status list credentials are pushed to"""
        self.status_list_registry_api_key = os.getenv("STATUS_LIST_REGISTRY_API_KEY")

        # Allocation
        self.allocation_free_list_threshold = float(os.getenv("ALLOCATION_FREE_LIST_THRESHOLD", "0.5"))
        """Occupancy from which on a free index is chosen from the explicit free list instead of random draws"""
        self.allocation_max_collision_retries = int(os.getenv("ALLOCATION_MAX_COLLISION_RETRIES", "10"))
        """How often a concurrently taken index is replaced by a new draw before giving up"""

        # Persistence
        self.persistence_attempts = int(os.getenv("PERSISTENCE_ATTEMPTS", "3"))
        self.persistence_backoff_seconds = float(os.getenv("PERSISTENCE_BACKOFF_SECONDS", "0.1"))
        self.revocation_max_retries = int(os.getenv("REVOCATION_MAX_RETRIES", "5"))
        """How often a bit flip is retried when the status list was changed concurrently"""

    def get_status_list_uri(self, status_list_id) -> str:
        return f'{self.revocation_url}/{status_list_id}'

    @cache
    def get_registry_client(self) -> httpx.Client:
        """Create a httpx client capable of interacting with the status list registry"""
        return httpx.Client(
            verify=self.enable_ssl_verification,
            headers=_create_api_key_header(self.status_list_registry_api_key),
            timeout=10.0,
        )


inject = Annotated[IssuerConfig, Depends(IssuerConfig)]
