"""
Random draw policy.

Candidate filtering, the uniform pick, exhaustion handling and group
auto-advance. The pure functions work on plain ImageRecord lists;
ImageDrawer runs one draw against an ImageStore.
"""
import logging
import math
import random
import threading

from image_draw.schemas import DrawOutcome, DrawResult, SelectionStatus

logger = logging.getLogger(__name__)


def has_quota_left(image, quota):
    return image.selected_count < quota


def group_capacity(images, total_groups):
    """How many images one group may claim when the set is split into total_groups."""
    if total_groups <= 1:
        return len(images)
    return math.ceil(len(images) / total_groups)


def find_candidates(images, group, total_groups, quota, exclude_id=None):
    """
    Images eligible for the next draw.

    group 0 draws from every image with quota left. A specific group skips
    images it already claimed and stops offering anything once it holds
    its share of the set, as long as some other group can still take an
    image. When no other group can, the share is ignored so the board can
    still finish.
    """
    pool = [img for img in images if img.id != exclude_id]
    if group == 0:
        return [img for img in pool if has_quota_left(img, quota)]

    capacity = group_capacity(images, total_groups)
    if _claimed(images, group) >= capacity:
        others = (g for g in range(1, total_groups + 1) if g != group)
        if any(_can_accept(images, g, quota, capacity) for g in others):
            return []
    return _unclaimed(pool, group, quota)


def _claimed(images, group):
    return sum(1 for img in images if img.group_id == group)


def _unclaimed(images, group, quota):
    return [img for img in images if img.group_id != group and has_quota_left(img, quota)]


def _can_accept(images, group, quota, capacity):
    return _claimed(images, group) < capacity and bool(_unclaimed(images, group, quota))


def next_group(current, total_groups):
    if current == 0 or current >= total_groups:
        return 1
    return current + 1


def pick(candidates, rng=random):
    index = int(rng.random() * len(candidates))
    return candidates[index]


def is_complete(images, quota):
    return len(images) > 0 and all(img.selected_count >= quota for img in images)


def selection_status(images, quota):
    total = len(images)
    selected = sum(1 for img in images if img.selected_count > 0)
    remaining = sum(1 for img in images if has_quota_left(img, quota))

    remaining_text = "All images available"
    if total > 0:
        if remaining == 0:
            remaining_text = "All images selected"
        elif remaining < total:
            remaining_text = f"{remaining} images remaining"

    return SelectionStatus(
        total=total,
        selected=selected,
        remaining=remaining,
        quota=quota,
        complete=is_complete(images, quota),
        remaining_text=remaining_text,
    )


def validate_groups(group, total_groups, max_groups):
    if total_groups < 1 or total_groups > max_groups:
        raise ValueError(f"totalGroups must be between 1 and {max_groups}")
    if group < 0 or group > total_groups:
        raise ValueError(f"groupId must be between 0 and {total_groups}")


class ImageDrawer:
    """Draws one random image at a time from an ImageStore."""

    def __init__(self, store, advance_delay_ms=1500, max_groups=10, rng=None):
        self.store = store
        self.advance_delay_ms = advance_delay_ms
        self.max_groups = max_groups
        self.rng = rng or random.Random()
        self._lock = threading.Lock()

    @property
    def quota(self):
        return self.store.quota

    def status(self):
        return selection_status(self.store.list(), self.quota)

    def draw(self, group=0, total_groups=1):
        validate_groups(group, total_groups, self.max_groups)
        with self._lock:
            return self._draw(group, total_groups)

    def _draw(self, group, total_groups):
        images = self.store.list()
        candidates = find_candidates(images, group, total_groups, self.quota)
        if not candidates:
            return self._no_candidates(images, group, total_groups)

        chosen = pick(candidates, self.rng)
        updated, changed = self.store.try_select(chosen.id, group)
        if not changed:
            # Another writer used up the quota between list() and select()
            logger.warning(f"Image {chosen.id} was exhausted before it could be drawn")
            return self._no_candidates(self.store.list(), group, total_groups)

        logger.info(f"Drew image {updated.id} ({updated.name}) for group {group}, count={updated.selected_count}")
        images = [updated if img.id == updated.id else img for img in images]
        result = DrawResult(
            outcome=DrawOutcome.DRAWN,
            message=f"Drew {updated.name}",
            group=group,
            image=updated,
            complete=is_complete(images, self.quota),
        )

        if group > 0 and total_groups > 1 and not result.complete:
            remaining = find_candidates(images, group, total_groups, self.quota, exclude_id=updated.id)
            if not remaining:
                result.next_group = next_group(group, total_groups)
                result.advance_delay_ms = self.advance_delay_ms
                result.message = (
                    f"Drew {updated.name}. All cards in group {group} are drawn, "
                    f"switching to group {result.next_group}"
                )
                logger.info(f"Group {group} exhausted, advancing to group {result.next_group}")
        return result

    def _no_candidates(self, images, group, total_groups):
        if not images:
            return DrawResult(
                outcome=DrawOutcome.NO_IMAGES,
                message="No images uploaded yet",
                group=group,
            )

        anything_left = any(has_quota_left(img, self.quota) for img in images)
        if not anything_left:
            return DrawResult(
                outcome=DrawOutcome.ALL_SELECTED,
                message=f"All images have been drawn {self.quota} time(s). Reset to start over.",
                group=group,
                complete=True,
            )

        if group > 0 and total_groups > 1:
            target = next_group(group, total_groups)
            logger.info(f"No cards left in group {group}, advancing to group {target}")
            return DrawResult(
                outcome=DrawOutcome.ADVANCED,
                message=f"All cards in group {group} are drawn, switched to group {target}",
                group=group,
                next_group=target,
            )

        return DrawResult(
            outcome=DrawOutcome.GROUP_EXHAUSTED,
            message=f"No images left to draw in group {group}. Reset or choose another group.",
            group=group,
        )
