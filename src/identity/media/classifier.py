"""
Classification of dropped files by extension.

Each dropped path becomes a `MediaItem` carrying an id in argument order, its
display name, its absolute path and a `Category` decided from the extension
alone. Nothing here touches the file contents.
"""
import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

from identity.utils import ANIMATED_EXTENSION, IMAGE_EXTENSIONS, VIDEO_EXTENSIONS


class Category(Enum):
    IMAGE = "Image"
    VIDEO = "Video"
    ANIMATED_IMAGE = "AnimatedImage"
    UNSUPPORTED = "Unsupported"


@dataclass(frozen=True)
class MediaItem:
    id: int
    display_name: str
    source_path: Path
    category: Category
    parent_id: Optional[int] = None

    @property
    def root_id(self) -> int:
        """Id of the dropped item this one ultimately came from."""
        return self.parent_id if self.parent_id is not None else self.id

    def derive(self, new_id: int, path: Path, category: Category) -> "MediaItem":
        """Build the item produced from this one (e.g. the MP4 made from a GIF)."""
        return replace(self, id=new_id, display_name=path.name, source_path=path,
                       category=category, parent_id=self.root_id)


def classify(file_name: str) -> Category:
    """Map a file name to its category using the lower-cased extension."""
    extension = os.path.splitext(file_name)[1].lower()
    if extension in IMAGE_EXTENSIONS:
        return Category.IMAGE
    if extension in VIDEO_EXTENSIONS:
        return Category.VIDEO
    if extension == ANIMATED_EXTENSION:
        return Category.ANIMATED_IMAGE
    return Category.UNSUPPORTED


def build_items(paths: Iterable[str | Path], start_id: int = 1) -> List[MediaItem]:
    """Create classified items for dropped paths, ids assigned in order."""
    items = []
    for item_id, raw in enumerate(paths, start=start_id):
        path = Path(raw).expanduser().absolute()
        items.append(MediaItem(id=item_id, display_name=path.name, source_path=path,
                               category=classify(path.name)))
    return items
