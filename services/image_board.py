# services/image_board.py
import itertools
import logging
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from services.models import IMAGE_TAGS, DEFAULT_IMAGE_WIDTH, DEFAULT_IMAGE_HEIGHT, Slot, image_url_for

logger = logging.getLogger(__name__)

FetchRequestCb = Callable[[int, str], None]  # request_id, url
SlotChangedCb = Callable[[Slot], None]
LoadedSetChangedCb = Callable[[FrozenSet[int]], None]
ImageDecoder = Callable[[bytes], Optional[Any]]  # returns None if the bytes are not an image


class ImageBoard:
    """
    Load/clear state machine for the image rows.

    Every method must be called from the UI thread. Network work is delegated
    through the fetch request callback; its outcome comes back through
    complete_fetch(), which the UI calls once it is back on its own thread.
    """

    def __init__(self,
                 decode_image: ImageDecoder,
                 tags: Iterable[int] = IMAGE_TAGS,
                 optimistic_load_all: bool = True,
                 image_width: int = DEFAULT_IMAGE_WIDTH,
                 image_height: int = DEFAULT_IMAGE_HEIGHT):
        self._decode_image = decode_image
        self.optimistic_load_all = optimistic_load_all
        self.slots: Dict[int, Slot] = {}
        for tag in tags:
            if tag in self.slots:
                raise ValueError(f"Duplicate image tag: {tag}")
            self.slots[tag] = Slot(tag=tag, url=image_url_for(tag, image_width, image_height))
        if not self.slots:
            raise ValueError("ImageBoard needs at least one image tag.")

        self._loaded: set = set()
        self._pending: Dict[int, int] = {}  # request_id -> tag
        self._request_ids = itertools.count(1)

        self.on_fetch_requested: Optional[FetchRequestCb] = None
        self.on_slot_changed: Optional[SlotChangedCb] = None
        self.on_loaded_set_changed: Optional[LoadedSetChangedCb] = None

    def set_callbacks(self, fetch_cb: FetchRequestCb, slot_changed_cb: SlotChangedCb,
                      loaded_set_changed_cb: Optional[LoadedSetChangedCb] = None):
        self.on_fetch_requested = fetch_cb
        self.on_slot_changed = slot_changed_cb
        self.on_loaded_set_changed = loaded_set_changed_cb

    @property
    def tags(self) -> List[int]:
        return list(self.slots.keys())

    @property
    def loaded_tags(self) -> FrozenSet[int]:
        return frozenset(self._loaded)

    @property
    def all_loaded(self) -> bool:
        return len(self._loaded) >= len(self.slots)

    def is_loaded(self, tag: int) -> bool:
        return tag in self._loaded

    def slot(self, tag: int) -> Slot:
        return self.slots[tag]

    # --- Row action ---

    def toggle(self, tag: int) -> None:
        """Clears the slot if its tag is loaded, otherwise requests its image."""
        slot = self.slots[tag]
        if tag in self._loaded:
            logger.info(f"[ImageBoard] Clearing image {tag}.")
            self._reset_slot(slot)
            self._loaded.discard(tag)
            self._notify_slot(slot)
            self._notify_loaded_set()
            return

        self._request_load(slot)

    # --- Aggregate action ---

    def toggle_all(self) -> None:
        """Loads every slot that is not loaded yet, or clears all of them if all are loaded."""
        if not self.all_loaded:
            to_load = [slot for tag, slot in self.slots.items() if tag not in self._loaded]
            logger.info(f"[ImageBoard] Loading all images. Requesting {[s.tag for s in to_load]} "
                        f"(optimistic={self.optimistic_load_all}).")
            for slot in to_load:
                self._request_load(slot)
            if self.optimistic_load_all:
                # Marked loaded before any fetch resolves; a failed fetch leaves its placeholder.
                self._loaded = set(self.slots.keys())
                for slot in to_load:
                    self._notify_slot(slot)
                self._notify_loaded_set()
            return

        logger.info("[ImageBoard] All images loaded. Clearing all.")
        for slot in self.slots.values():
            self._reset_slot(slot)
        self._loaded.clear()
        for slot in self.slots.values():
            self._notify_slot(slot)
        self._notify_loaded_set()

    # --- Fetch completion ---

    def complete_fetch(self, request_id: int, payload: Optional[bytes]) -> bool:
        """
        Applies the outcome of a fetch. payload is None when the fetch failed.
        Returns True if a slot now shows the fetched image.
        """
        tag = self._pending.pop(request_id, None)
        if tag is None:
            logger.debug(f"[ImageBoard] Dropping stale completion for request {request_id}.")
            return False

        slot = self.slots[tag]
        slot.pending_request = None

        image = self._decode_image(payload) if payload else None
        if image is None:
            reason = "no payload" if not payload else "payload is not a valid image"
            logger.warning(f"[ImageBoard] Load failed for image {tag} ({slot.url}): {reason}.")
            # Pending state changed even though the image did not.
            self._notify_slot(slot)
            return False

        slot.image = image
        added = tag not in self._loaded
        self._loaded.add(tag)
        logger.info(f"[ImageBoard] Image {tag} loaded.")
        self._notify_slot(slot)
        if added:
            self._notify_loaded_set()
        return True

    # --- Internals ---

    def _request_load(self, slot: Slot) -> None:
        if slot.pending_request is not None:
            self._pending.pop(slot.pending_request, None)
            logger.debug(f"[ImageBoard] Superseding request {slot.pending_request} for image {slot.tag}.")
        request_id = next(self._request_ids)
        slot.pending_request = request_id
        self._pending[request_id] = slot.tag
        logger.debug(f"[ImageBoard] Request {request_id}: image {slot.tag} from {slot.url}")
        self._notify_slot(slot)
        if self.on_fetch_requested:
            self.on_fetch_requested(request_id, slot.url)
        else:
            logger.warning(f"[ImageBoard] No fetch callback set; request {request_id} for image {slot.tag} goes nowhere.")

    def _reset_slot(self, slot: Slot) -> None:
        if slot.pending_request is not None:
            self._pending.pop(slot.pending_request, None)
            slot.pending_request = None
        slot.image = None

    def _notify_slot(self, slot: Slot) -> None:
        if self.on_slot_changed:
            self.on_slot_changed(slot)

    def _notify_loaded_set(self) -> None:
        if self.on_loaded_set_changed:
            self.on_loaded_set_changed(self.loaded_tags)
