# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Revocation List Lifecycle

Creates status lists on demand, hands out the status entry for new credentials and
regenerates, re-signs & publishes a status list credential when a credential is revoked.

StatusList2021
https://www.w3.org/TR/2023/WD-vc-status-list-20230427/
"""

import logging
import random
import threading
import time
import uuid
from typing import Annotated
from functools import cache

from fastapi import Depends
import sqlalchemy.exc
import sqlalchemy.orm as sa_orm
from sqlalchemy.orm.exc import StaleDataError

import common.db.postgres as db
import common.key_configuration as key
import common.status_list as sl

import issuer.config as conf
import issuer.db.credential as ledger
import issuer.db.status_list as sl_db
from issuer.allocator import IndexAllocator
from issuer.exception.revocation_errors import ExhaustedError, InvalidStatusListIndexError, PersistenceError
from issuer.logging import IssuerOperationsLogEntry
from issuer.publisher import StatusListPublisher

_logger = logging.getLogger(__name__)


class RevocationListManager:
    """
    One instance per process, shared by all requests.
    All state is kept in the database, the instance only remembers which list it has ensured to exist.
    """

    def __init__(
        self,
        config: conf.IssuerConfig,
        signer: key.Signer,
        publisher: StatusListPublisher | None = None,
        allocator: IndexAllocator | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config
        self.signer = signer
        if publisher is None:
            registry_url = config.status_list_registry_url
            publisher = StatusListPublisher(registry_url, config.get_registry_client() if registry_url else None)
        self.publisher = publisher
        self.rng = rng or random.SystemRandom()
        self.allocator = allocator or IndexAllocator(
            free_list_threshold=config.allocation_free_list_threshold,
            max_collision_retries=config.allocation_max_collision_retries,
            persistence_attempts=config.persistence_attempts,
            persistence_backoff_seconds=config.persistence_backoff_seconds,
            rng=self.rng,
        )
        self._lock = threading.Lock()
        self._active_list_id: uuid.UUID | None = None

    def _sign(self, uri: str, status_list: sl.StatusList2021) -> str:
        credential = sl.create_status_list_credential(uri, self.config.issuer_id, status_list, self.config.status_list_purpose)
        return self.signer.sign(credential)

    def _known_lists(self, session: sa_orm.Session) -> list[sl_db.StatusList]:
        return sl_db.get_status_lists(session, issuer=self.config.issuer_id, purpose=self.config.status_list_purpose)

    def _publish(self, session: sa_orm.Session, status_list: sl_db.StatusList) -> None:
        status_list_id, version = status_list.id, status_list.version
        self.publisher.publish(status_list)
        try:
            db.retry_on_operational_error(
                session,
                lambda: sl_db.mark_published(session, status_list_id, version),
                self.config.persistence_attempts,
                self.config.persistence_backoff_seconds,
            )
        except sqlalchemy.exc.OperationalError as e:
            raise PersistenceError(f"Publication of status list {status_list_id} could not be recorded") from e

    def publish_pending(self, session: sa_orm.Session, status_list: sl_db.StatusList) -> None:
        """
        Publishes the list if its current version has not been published yet, eg. after the registry was unavailable
        """
        if not status_list.is_published:
            _logger.info(f"Status list {status_list.id} version {status_list.version} is not published yet")
            self._publish(session, status_list)

    def provision_list(self, session: sa_orm.Session) -> sl_db.StatusList:
        """
        Creates, signs & publishes a new empty status list
        """
        status_list_id = uuid.uuid4()
        uri = self.config.get_status_list_uri(status_list_id)
        bits = sl.create_empty(self.config.status_list_capacity)
        status_credential_jwt = self._sign(uri, bits)

        def create() -> sl_db.StatusList:
            return sl_db.create_status_list(
                session,
                status_list_id=status_list_id,
                uri=uri,
                issuer=self.config.issuer_id,
                purpose=self.config.status_list_purpose,
                status_list=bits,
                capacity=self.config.status_list_capacity,
                status_credential_jwt=status_credential_jwt,
            )

        try:
            status_list = db.retry_on_operational_error(session, create, self.config.persistence_attempts, self.config.persistence_backoff_seconds)
        except sqlalchemy.exc.OperationalError as e:
            raise PersistenceError(f"Status list {status_list_id} could not be created") from e

        _logger.info(
            IssuerOperationsLogEntry(
                message="Status list created.",
                status=IssuerOperationsLogEntry.Status.success,
                operation=IssuerOperationsLogEntry.Operation.provisioning,
                step=IssuerOperationsLogEntry.Step.provisioning_create,
                status_list_id=status_list_id,
            )
        )
        self._publish(session, status_list)
        return status_list

    def ensure_active_list(self, session: sa_orm.Session) -> sl_db.StatusList:
        """
        Makes sure at least one published status list exists, creating it on first use.
        Once a list is known further calls have no side effects.
        """
        with self._lock:
            if self._active_list_id is None:
                known_lists = self._known_lists(session)
                if known_lists:
                    status_list = known_lists[0]
                    self.publish_pending(session, status_list)
                else:
                    status_list = self.provision_list(session)
                self._active_list_id = status_list.id
                return status_list
        return sl_db.get_status_list_orm(self._active_list_id, session)

    def select_list(self, session: sa_orm.Session) -> sl_db.StatusList:
        """
        Chooses the status list for a new credential according to the configured policy
        * random: any known list
        * least_occupied: the list with the lowest share of assigned indices
        """
        known_lists = self._known_lists(session) or [self.ensure_active_list(session)]
        if self.config.status_list_selection == "least_occupied":
            return min(known_lists, key=lambda status_list: ledger.count_assignments(session, status_list.id) / status_list.capacity)
        return self.rng.choice(known_lists)

    def _list_with_free_index(self, session: sa_orm.Session) -> sl_db.StatusList | None:
        for status_list in self._known_lists(session):
            if ledger.count_assignments(session, status_list.id) < status_list.capacity:
                return status_list
        return None

    def pick_list_and_index(self, session: sa_orm.Session, user_id: str, credential_type: str) -> sl.StatusList2021Entry:
        """
        Assigns a status list index to a credential about to be issued & records it.
        Returns the credentialStatus the credential has to carry.
        """
        self.ensure_active_list(session)
        status_list = self.select_list(session)
        self.publish_pending(session, status_list)
        try:
            assignment = self.allocator.allocate(session, status_list, user_id, credential_type)
        except ExhaustedError:
            _logger.warning(f"Status list {status_list.id} is exhausted, looking for a list with free indices")
            with self._lock:
                status_list = self._list_with_free_index(session) or self.provision_list(session)
                self.publish_pending(session, status_list)
            assignment = self.allocator.allocate(session, status_list, user_id, credential_type)
        return sl.create_status_list_entry(status_list.uri, assignment.index, status_list.purpose)

    def revoke(self, session: sa_orm.Session, status_list_id: uuid.UUID, index: int) -> sl_db.StatusList:
        """
        Sets the bit at index, re-signs and publishes the status list credential.
        Concurrent updates of the same list are detected by the list version and retried,
        as are transient database failures.
        Revoking an index again only publishes the list if its last publication failed.
        """
        for attempt in range(1, self.config.revocation_max_retries + 1):
            try:
                status_list = sl_db.get_status_list_orm(status_list_id, session, for_update=True)
                capacity = status_list.capacity
                if not 0 <= index < capacity:
                    session.rollback()
                    raise InvalidStatusListIndexError(status_list_id, index, capacity)
                bits = status_list.load()
                if bits.get_bit(index):
                    # releases the row lock
                    session.rollback()
                    _logger.info(f"Index {index} of status list {status_list_id} is already revoked")
                    self.publish_pending(session, status_list)
                    return status_list
                bits.set_bit(index, True)
                sl_db.update_status_list(session, status_list, bits, self._sign(status_list.uri, bits))
            except StaleDataError:
                session.rollback()
                _logger.info(f"Status list {status_list_id} was updated concurrently, retrying ({attempt=})")
                continue
            except sqlalchemy.exc.OperationalError:
                session.rollback()
                _logger.warning(f"Transient database failure while revoking index {index} of status list {status_list_id} ({attempt=})")
                time.sleep(self.config.persistence_backoff_seconds * 2 ** (attempt - 1))
                continue

            _logger.info(
                IssuerOperationsLogEntry(
                    message="Status list index revoked.",
                    status=IssuerOperationsLogEntry.Status.success,
                    operation=IssuerOperationsLogEntry.Operation.revocation,
                    step=IssuerOperationsLogEntry.Step.revocation_bit,
                    status_list_id=status_list_id,
                    status_list_index=index,
                )
            )
            self._publish(session, status_list)
            return status_list

        _logger.error(
            IssuerOperationsLogEntry(
                message="Status list could not be updated.",
                status=IssuerOperationsLogEntry.Status.error,
                operation=IssuerOperationsLogEntry.Operation.revocation,
                step=IssuerOperationsLogEntry.Step.revocation_bit,
                status_list_id=status_list_id,
                status_list_index=index,
            )
        )
        raise PersistenceError(f"Index {index} of status list {status_list_id} could not be revoked")

    def revoke_credentials(self, session: sa_orm.Session, user_id: str, credential_type: str | None = None) -> list[ledger.IndexAssignment]:
        """Revokes every credential recorded for the user, optionally only the ones of a type"""
        assignments = ledger.find_assignments(session, user_id, credential_type)
        for assignment in assignments:
            self.revoke(session, assignment.status_list_id, assignment.index)
        return assignments

    def store_revocable_credential(self, session: sa_orm.Session, credentials: list, user_id: str) -> list[ledger.IndexAssignment]:
        return ledger.store_revocable_credential(
            session,
            credentials,
            user_id,
            attempts=self.config.persistence_attempts,
            backoff_seconds=self.config.persistence_backoff_seconds,
        )

    def get_status_list_credential(self, session: sa_orm.Session, status_list_id: uuid.UUID) -> str:
        """The currently published status list credential"""
        return sl_db.get_status_list_orm(status_list_id, session).status_credential_jwt


@cache
def get_revocation_list_manager() -> RevocationListManager:
    return RevocationListManager(conf.IssuerConfig(), key.get_key_configuration())


inject = Annotated[RevocationListManager, Depends(get_revocation_list_manager)]
