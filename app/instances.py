# app/instances.py

import logging
from datetime import datetime, timezone
from typing import List
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from . import crud

logger = logging.getLogger(__name__)


class MalformedIdentityError(ValueError):
    pass


def instance_of(identity: str) -> str:
    """Ambil bagian instance (setelah '@' pertama) dari federation id."""
    _, sep, instance = identity.partition("@")
    if not sep or not instance:
        raise MalformedIdentityError(f"Federation id '{identity}' tidak memiliki instance.")
    return instance


class InstanceManager:
    """Registry instance federasi yang diturunkan dari tabel users.

    Setiap instance disimpan sekali beserta waktu pertama kali terlihat.
    Registry dibangun ulang dari users saat kosong, dan diperbarui setiap
    kali sebuah federation id ditambahkan atau dihapus.
    """

    def __init__(self, db: Session):
        self.db = db

    def register(self, name: str) -> None:
        if crud.get_instance(self.db, name) is not None:
            return
        try:
            crud.create_instance(self.db, name=name, timestamp=datetime.now(timezone.utc))
            logger.info(f"Registered instance '{name}'.")
        except IntegrityError:
            # Insert paralel sudah lebih dulu membuat baris yang sama
            self.db.rollback()
            logger.info(f"Instance '{name}' already registered by a concurrent request.")

    def list_instances(self) -> List[str]:
        return crud.get_instance_names(self.db)

    def get_instances_or_sync(self) -> List[str]:
        instances = self.list_instances()
        if not instances:
            logger.info("Instance registry is empty, syncing from users.")
            self.synchronize()
            instances = self.list_instances()
        return instances

    def synchronize(self) -> None:
        """Samakan tabel instances dengan instance yang dipakai di tabel users.

        Federation id tanpa '@' dilewati dengan peringatan.
        """
        observed = set()
        for federation_id in crud.get_federation_ids(self.db):
            try:
                instance = instance_of(federation_id)
            except MalformedIdentityError:
                logger.warning(f"Skipping malformed federation id '{federation_id}' during sync.")
                continue
            observed.add(instance)

        for instance in observed:
            self.register(instance)

        for stale in set(self.list_instances()) - observed:
            self.remove_instance(stale)

        logger.info(f"Synced {len(observed)} instances from users.")

    def remove_instance(self, name: str, also_remove_identities: bool = False) -> None:
        if crud.delete_instance(self.db, name):
            logger.info(f"Removed instance '{name}'.")

        if also_remove_identities:
            removed = crud.delete_users_for_instance(self.db, name)
            logger.info(f"Removed {removed} users of instance '{name}'.")

    def on_identity_added(self, identity: str) -> None:
        self.register(instance_of(identity))

    def on_identity_removed(self, identity: str) -> None:
        instance = instance_of(identity)
        if not crud.identity_exists_for_instance(self.db, instance):
            self.remove_instance(instance)
