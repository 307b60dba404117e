import logging

from jobmarket.models import Identity, Role
from jobmarket.storage import USER_KEY, BlobStorage

logger = logging.getLogger(__name__)


class SessionStore:
    """Holds the identity of the signed-in user, persisted under one blob."""

    def __init__(self, storage: BlobStorage) -> None:
        self._storage = storage
        self._identity: Identity | None = None

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    @property
    def role(self) -> Role:
        if self._identity is None:
            return Role.NONE
        return self._identity.role

    def set_identity(self, identity: Identity) -> Identity:
        self._identity = identity
        self._save()
        return identity

    def set_role(self, role: Role) -> Identity | None:
        if self._identity is None:
            return None
        self._identity = self._identity.model_copy(update={"role": role})
        self._save()
        return self._identity

    def clear(self) -> None:
        self._identity = None
        self._storage.remove(USER_KEY)

    def initialize(self) -> None:
        try:
            raw = self._storage.get(USER_KEY)
            if raw is None:
                return
            self._identity = Identity.model_validate_json(raw)
        except ValueError as e:
            logger.warning("Discarding unreadable saved identity: %s", e)
            self._identity = None
            self._storage.remove(USER_KEY)

    def _save(self) -> None:
        self._storage.set(USER_KEY, self._identity.model_dump_json())
