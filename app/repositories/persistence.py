import logging
import threading
from typing import Callable, Dict, List, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.exceptions import PersistenceError
from ..models import StoredRecord

logger = logging.getLogger(__name__)


class PersistenceSink(Protocol):
    def save(self, collection: str, records: List[dict]) -> None: ...

    def load(self, collection: str) -> List[dict]: ...


def default_record_key(record: dict) -> str:
    return str(record.get("id"))


class SqlPersistenceSink:
    """Durable key-value store: each save replaces a whole collection.

    ``record_keys`` maps a collection name to the function deriving each
    record's key inside that collection.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        record_keys: Dict[str, Callable[[dict], str]] = None,
    ):
        self.session_factory = session_factory
        self.record_keys = dict(record_keys or {})

    def save(self, collection: str, records: List[dict]) -> None:
        key_of = self.record_keys.get(collection, default_record_key)
        try:
            with self.session_factory() as db:
                db.query(StoredRecord).filter(
                    StoredRecord.collection == collection
                ).delete(synchronize_session=False)
                db.add_all(
                    StoredRecord(collection=collection, record_key=key_of(record), payload=record)
                    for record in records
                )
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save collection '{collection}': {str(e)}")
            raise PersistenceError(f"Could not save {collection}") from e
        logger.debug(f"Saved {len(records)} records to '{collection}'")

    def load(self, collection: str) -> List[dict]:
        try:
            with self.session_factory() as db:
                rows = (
                    db.query(StoredRecord)
                    .filter(StoredRecord.collection == collection)
                    .order_by(StoredRecord.id)
                    .all()
                )
                return [dict(row.payload) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to load collection '{collection}': {str(e)}")
            raise PersistenceError(f"Could not load {collection}") from e


AVAILABILITY_COLLECTION = "availability"
APPOINTMENTS_COLLECTION = "appointments"
OUTCOMES_COLLECTION = "appointment_outcomes"


class SnapshotWriter:
    """Saves repository snapshots to a sink.

    Services call ``flush`` after releasing their per-doctor locks, so a slow
    sink delays only the caller that triggered the save. Snapshots are taken
    under the writer's own lock at save time, hence the most recent state is
    what ends up stored regardless of the order in which callers arrive.
    """

    def __init__(self, sink: PersistenceSink, sources: Dict[str, Callable[[], List[dict]]]):
        self.sink = sink
        self.sources = dict(sources)
        self._lock = threading.Lock()

    def flush(self, *collections: str) -> None:
        with self._lock:
            for collection in collections:
                self.sink.save(collection, self.sources[collection]())

    def load_into(self, targets: Dict[str, Callable[[List[dict]], None]]) -> None:
        with self._lock:
            for collection, load in targets.items():
                records = self.sink.load(collection)
                load(records)
                logger.info(f"Loaded {len(records)} records from '{collection}'")
