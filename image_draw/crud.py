from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from image_draw.models import Image


def save_image_records(db: Session, uploads, timestamp):
    db_images = [
        Image(
            name=upload.name,
            data=upload.data,
            selected=False,
            selected_count=0,
            group_id=0,
            timestamp=timestamp,
        )
        for upload in uploads
    ]
    if not db_images:
        return []
    db.add_all(db_images)
    db.commit()
    for db_img in db_images:
        db.refresh(db_img)
    return db_images


def get_images(db: Session):
    return list(db.scalars(select(Image).order_by(Image.id)))


def get_image(db: Session, image_id):
    return db.get(Image, image_id)


def mark_selected(db: Session, image_id, group_id, quota, timestamp):
    """Count one draw against an image unless its quota is already used up.

    Check and increment happen in a single UPDATE so concurrent draws
    cannot push selected_count past quota. Returns the number of rows
    changed (0 or 1).
    """
    stmt = (
        update(Image)
        .where(Image.id == image_id, Image.selected_count < quota)
        .values(
            selected_count=Image.selected_count + 1,
            selected=True,
            group_id=group_id,
            timestamp=timestamp,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount


def delete_image(db: Session, image_id):
    result = db.execute(delete(Image).where(Image.id == image_id))
    db.commit()
    return result.rowcount


def delete_all_images(db: Session):
    result = db.execute(delete(Image))
    db.commit()
    return result.rowcount


def clear_selections(db: Session):
    result = db.execute(
        update(Image)
        .values(selected=False, selected_count=0, group_id=0)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount
