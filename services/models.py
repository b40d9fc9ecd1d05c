from dataclasses import dataclass
from typing import Any, Optional, Tuple

IMAGE_TAGS: Tuple[int, ...] = (237, 230, 222, 257, 240)

PICSUM_URL_TEMPLATE = "https://picsum.photos/id/{tag}/{width}/{height}"
DEFAULT_IMAGE_WIDTH = 120
DEFAULT_IMAGE_HEIGHT = 80


def image_url_for(tag: int, width: int = DEFAULT_IMAGE_WIDTH, height: int = DEFAULT_IMAGE_HEIGHT) -> str:
    """Returns the picsum.photos URL for the given image tag."""
    return PICSUM_URL_TEMPLATE.format(tag=tag, width=width, height=height)


@dataclass
class Slot:
    """
    One image display unit on the board.

    Attributes:
        tag (int): Fixed picsum image id. Used both in the URL path and as the lookup key.
        url (str): The URL the image is fetched from.
        image (Optional[Any]): The decoded image currently shown, or None when the
                               placeholder is shown. The board does not care about
                               its type; the UI stores QPixmaps here.
        pending_request (Optional[int]): Request id of the fetch whose completion is
                                         still allowed to update this slot.
    """
    tag: int
    url: str
    image: Optional[Any] = None
    pending_request: Optional[int] = None

    @property
    def is_pending(self) -> bool:
        return self.pending_request is not None
