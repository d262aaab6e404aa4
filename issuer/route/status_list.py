# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Publication & management of the status lists
"""

import uuid

import fastapi
from fastapi import status

from common.apikey import require_api_key
import common.db.postgres as db
import common.model.exception as ex

import issuer.db.status_list as sl_db
import issuer.statuslist2021 as sl_2021
from issuer import models

TAG = "Status List"

router = fastapi.APIRouter(prefix="/status-list", tags=[TAG], responses={status.HTTP_404_NOT_FOUND: {"model": ex.HTTPError}})


@router.get("/{status_list_id}")
def get_status_list(status_list_id: uuid.UUID, manager: sl_2021.inject, session: db.inject) -> str:
    """
    Returns the StatusList2021Credential as a JWT
    """
    return manager.get_status_list_credential(session, status_list_id)


@router.get("", dependencies=[fastapi.Security(require_api_key)])
def list_status_lists(session: db.inject) -> list[models.StatusListInfo]:
    return list(map(models.StatusListInfo.from_orm_list, sl_db.get_status_lists(session)))


@router.post(
    "",
    dependencies=[fastapi.Security(require_api_key)],
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ex.HTTPError}},
)
def create_status_list(manager: sl_2021.inject, session: db.inject) -> models.StatusListInfo:
    """
    Creates & publishes a new, empty status list.
    New credentials are spread over all existing lists.
    """
    return models.StatusListInfo.from_orm_list(manager.provision_list(session))


@router.post(
    "/{status_list_id}/revoke",
    dependencies=[fastapi.Security(require_api_key)],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ex.HTTPError},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ex.HTTPError},
    },
)
def revoke_index(status_list_id: uuid.UUID, request: models.RevokeIndexRequest, manager: sl_2021.inject, session: db.inject) -> models.StatusListInfo:
    """
    Revokes the credential holding the index. Revoked indices stay revoked.
    """
    return models.StatusListInfo.from_orm_list(manager.revoke(session, status_list_id, request.index))
