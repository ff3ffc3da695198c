"""Retention rotation for backup images.

Image names are expected to look like ``<instance>-...-<timestamp>`` (for
example ``myserver-1615610620``). Images are grouped by the first
dash-separated field and, for every group holding more than ``copies``
images, the one with the smallest last field is selected for deletion.

Only one image per group is selected on each run; a group that is several
images over the limit shrinks by one per scheduled run.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

SEPARATOR = '-'


def parse_name(name: str) -> Tuple[str, str]:
    """Split an image name into ``(instance_key, ordering_key)``.

    A name without a separator yields the whole name for both.
    """
    fields = name.split(SEPARATOR)
    return fields[0], fields[-1]


@dataclass(frozen=True)
class Image:
    image_id: str
    name: str

    @classmethod
    def from_api(cls, raw: dict) -> 'Image':
        return cls(image_id=raw['ImageId'], name=raw.get('Name', ''))

    @property
    def instance_key(self) -> str:
        return parse_name(self.name)[0]

    @property
    def ordering_key(self) -> str:
        return parse_name(self.name)[1]


def group_images(images: Iterable[Image]) -> Dict[str, List[Tuple[str, str]]]:
    """Bucket ``(ordering_key, image_id)`` pairs by instance key."""
    groups = defaultdict(list)
    for image in images:
        instance_key, ordering_key = parse_name(image.name)
        groups[instance_key].append((ordering_key, image.image_id))
    return dict(groups)


@dataclass(frozen=True)
class Decision:
    instance_key: str
    group_size: int
    copies: int
    image_id: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.image_id is None

    def advisory(self) -> str:
        return "There's less than %d images for %s. Skipping rotation." % (
            self.copies, self.instance_key)


def select_for_deletion(instance_key: str, group: List[Tuple[str, str]],
                        copies: int) -> Decision:
    """Pick the oldest image of a group once it holds more than ``copies``.

    Keys compare as strings, so timestamps are only ordered correctly while
    they share the same number of digits. ``min`` keeps the first of equal
    keys.
    """
    if len(group) <= copies:
        return Decision(instance_key, len(group), copies)
    _, image_id = min(group, key=lambda pair: pair[0])
    return Decision(instance_key, len(group), copies, image_id)


@dataclass
class RotationPlan:
    decisions: List[Decision] = field(default_factory=list)

    @property
    def deletions(self) -> List[str]:
        seen = set()
        ids = []
        for decision in self.decisions:
            if decision.skipped or decision.image_id in seen:
                continue
            seen.add(decision.image_id)
            ids.append(decision.image_id)
        return ids

    @property
    def skipped(self) -> List[Decision]:
        return [d for d in self.decisions if d.skipped]


def plan_rotation(images: Iterable[Image], copies: int) -> RotationPlan:
    """Compute which images to delete on this run."""
    groups = group_images(images)
    return RotationPlan([
        select_for_deletion(instance_key, group, copies)
        for instance_key, group in groups.items()
    ])
