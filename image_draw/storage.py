"""
Image storage backends.

Both backends expose the same ImageStore capability: list, get, create,
select, delete and reset. Callers refetch with list() after a mutation;
nothing is cached between calls.
"""
import datetime
import itertools
import logging
import threading
from abc import ABC, abstractmethod

from image_draw import crud
from image_draw.database import init_db, make_engine, make_session_factory
from image_draw.schemas import ImageRecord

logger = logging.getLogger(__name__)


class ImageNotFoundError(Exception):
    """Raised when an image id does not exist in the store."""

    def __init__(self, image_id):
        super().__init__(f"Image not found: {image_id}")
        self.image_id = image_id


def now_iso():
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ImageStore(ABC):
    def __init__(self, quota=1, reset_policy="delete"):
        if quota < 1:
            raise ValueError("quota must be at least 1")
        if reset_policy not in ("delete", "clear"):
            raise ValueError(f"Unknown reset policy: {reset_policy}")
        self.quota = quota
        self.reset_policy = reset_policy

    @abstractmethod
    def list(self):
        """Return every ImageRecord ordered by id."""

    @abstractmethod
    def get(self, image_id):
        """Return one ImageRecord or raise ImageNotFoundError."""

    @abstractmethod
    def create(self, uploads):
        """Store new images (objects with name and data) and return their records."""

    @abstractmethod
    def try_select(self, image_id, group_id=0):
        """Count one draw against an image.

        Returns (record, changed). If the image already reached the quota
        the record comes back unchanged with changed=False. Raises
        ImageNotFoundError for unknown ids.
        """

    def select(self, image_id, group_id=0):
        record, _ = self.try_select(image_id, group_id)
        return record

    @abstractmethod
    def delete(self, image_id):
        """Remove one image or raise ImageNotFoundError."""

    @abstractmethod
    def reset(self):
        """Apply the reset policy to every image."""


class MemoryImageStore(ImageStore):
    def __init__(self, quota=1, reset_policy="delete"):
        super().__init__(quota, reset_policy)
        self._images = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def list(self):
        with self._lock:
            return [self._images[key] for key in sorted(self._images)]

    def get(self, image_id):
        with self._lock:
            try:
                return self._images[image_id]
            except KeyError:
                raise ImageNotFoundError(image_id)

    def create(self, uploads):
        timestamp = now_iso()
        created = []
        with self._lock:
            for upload in uploads:
                record = ImageRecord(
                    id=next(self._ids),
                    name=upload.name,
                    data=upload.data,
                    selected=False,
                    selected_count=0,
                    group_id=0,
                    timestamp=timestamp,
                )
                self._images[record.id] = record
                created.append(record)
        return created

    def try_select(self, image_id, group_id=0):
        with self._lock:
            image = self._images.get(image_id)
            if image is None:
                raise ImageNotFoundError(image_id)
            if image.selected_count >= self.quota:
                logger.info(f"Image {image_id} already drawn {image.selected_count} time(s), quota reached")
                return image, False
            updated = image.model_copy(update={
                "selected": True,
                "selected_count": image.selected_count + 1,
                "group_id": group_id,
                "timestamp": now_iso(),
            })
            self._images[image_id] = updated
            return updated, True

    def delete(self, image_id):
        with self._lock:
            if self._images.pop(image_id, None) is None:
                raise ImageNotFoundError(image_id)

    def reset(self):
        with self._lock:
            if self.reset_policy == "delete":
                self._images.clear()
                return
            for key, image in self._images.items():
                self._images[key] = image.model_copy(update={
                    "selected": False,
                    "selected_count": 0,
                    "group_id": 0,
                })


class DatabaseImageStore(ImageStore):
    def __init__(self, session_factory, quota=1, reset_policy="delete"):
        super().__init__(quota, reset_policy)
        self._session_factory = session_factory

    def list(self):
        with self._session_factory() as db:
            return [ImageRecord.model_validate(img) for img in crud.get_images(db)]

    def get(self, image_id):
        with self._session_factory() as db:
            img = crud.get_image(db, image_id)
            if img is None:
                raise ImageNotFoundError(image_id)
            return ImageRecord.model_validate(img)

    def create(self, uploads):
        with self._session_factory() as db:
            created = crud.save_image_records(db, uploads, now_iso())
            return [ImageRecord.model_validate(img) for img in created]

    def try_select(self, image_id, group_id=0):
        with self._session_factory() as db:
            if crud.get_image(db, image_id) is None:
                raise ImageNotFoundError(image_id)
            changed = crud.mark_selected(db, image_id, group_id, self.quota, now_iso())
            if not changed:
                logger.info(f"Image {image_id} quota reached, selection left unchanged")
            img = crud.get_image(db, image_id)
            if img is None:
                raise ImageNotFoundError(image_id)
            return ImageRecord.model_validate(img), bool(changed)

    def delete(self, image_id):
        with self._session_factory() as db:
            if not crud.delete_image(db, image_id):
                raise ImageNotFoundError(image_id)

    def reset(self):
        with self._session_factory() as db:
            if self.reset_policy == "delete":
                removed = crud.delete_all_images(db)
                logger.info(f"Deleted {removed} image(s)")
            else:
                cleared = crud.clear_selections(db)
                logger.info(f"Cleared selection state on {cleared} image(s)")


def build_store(settings):
    """Create the store backend named by settings.image_store."""
    if settings.image_store == "memory":
        logger.info("Using in-memory image store")
        return MemoryImageStore(quota=settings.draw_quota, reset_policy=settings.reset_policy)

    engine = make_engine(settings.database_url)
    init_db(engine)
    logger.info(f"Using database image store at {engine.url.render_as_string(hide_password=True)}")
    return DatabaseImageStore(
        make_session_factory(engine),
        quota=settings.draw_quota,
        reset_policy=settings.reset_policy,
    )
