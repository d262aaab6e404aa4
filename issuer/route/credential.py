# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Status handling of the credentials issued
"""

import fastapi
from fastapi import status

from common.apikey import require_api_key
import common.db.postgres as db
import common.model.exception as ex
import common.status_list as sl

import issuer.statuslist2021 as sl_2021
from issuer import models

TAG = "Credential Status"

router = fastapi.APIRouter(
    prefix="/credential",
    dependencies=[fastapi.Security(require_api_key)],
    tags=[TAG],
    responses={
        status.HTTP_409_CONFLICT: {"model": ex.HTTPError},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ex.HTTPError},
    },
)


@router.post("/status")
def create_credential_status(request: models.StatusRequest, manager: sl_2021.inject, session: db.inject) -> sl.StatusList2021Entry:
    """
    Assigns a status list index to a credential about to be issued.
    The returned entry has to be set as credentialStatus of the credential.
    """
    return manager.pick_list_and_index(session, request.user_id, request.credential_type)


@router.post("/store")
def store_credentials(request: models.StoreCredentialsRequest, manager: sl_2021.inject, session: db.inject) -> list[models.IndexAssignmentInfo]:
    """
    Records the status list indices of credentials issued
    """
    assignments = manager.store_revocable_credential(session, request.credentials, request.user_id)
    return list(map(models.IndexAssignmentInfo.from_assignment, assignments))


@router.post("/revoke", responses={status.HTTP_404_NOT_FOUND: {"model": ex.HTTPError}})
def revoke_credentials(request: models.RevokeCredentialsRequest, manager: sl_2021.inject, session: db.inject) -> list[models.IndexAssignmentInfo]:
    assignments = manager.revoke_credentials(session, request.user_id, request.credential_type)
    if not assignments:
        raise fastapi.HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No credentials recorded for user {request.user_id}")
    return list(map(models.IndexAssignmentInfo.from_assignment, assignments))
