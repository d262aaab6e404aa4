# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Publication of signed status list credentials.

The issuer itself serves every stored status list credential at its uri (see route.status_list).
If a registry is configured the credential is additionally pushed there, so verifiers
can fetch it independent of the issuer.
"""

import logging

import httpx

from issuer.db.status_list import StatusList
from issuer.exception.revocation_errors import PersistenceError
from issuer.logging import IssuerOperationsLogEntry

_logger = logging.getLogger(__name__)

REQUEST_HEADER_JSON = {'accept': 'application/json', 'Content-Type': 'application/json'}


class StatusListPublisher:
    def __init__(self, registry_url: str | None = None, client: httpx.Client | None = None):
        self.registry_url = registry_url.rstrip("/") if registry_url else None
        self.client = client

    def get_registry_uri(self, status_list: StatusList) -> str:
        return f"{self.registry_url}/{status_list.id}"

    def publish(self, status_list: StatusList) -> None:
        """
        Pushes the current status list credential to the registry, if one is configured.
        Raises PersistenceError if the registry does not accept it.
        """
        if not self.registry_url:
            return
        uri = self.get_registry_uri(status_list)
        try:
            r = self.client.put(
                uri,
                json={"id": str(status_list.id), "uri": status_list.uri, "status_credential_jwt": status_list.status_credential_jwt},
                headers=REQUEST_HEADER_JSON,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            _logger.error(
                IssuerOperationsLogEntry(
                    message=f"Status list registry '{uri}' did not accept the status list: {e}",
                    status=IssuerOperationsLogEntry.Status.error,
                    operation=IssuerOperationsLogEntry.Operation.revocation,
                    step=IssuerOperationsLogEntry.Step.revocation_publish,
                    status_list_id=status_list.id,
                )
            )
            raise PersistenceError(f"Status list {status_list.id} could not be published") from e
