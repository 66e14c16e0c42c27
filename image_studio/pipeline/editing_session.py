"""
Editing session
One user's editing state: the current source image, the derived displayed
image, the filter vector, and the crop scene.

The (source, displayed, filter_state) triple is only ever swapped as a whole,
under the session lock. Long-running work (decode, background removal) is
tagged with the generation of the source it started from; results arriving
for an older generation are dropped.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..models.image import Image
from ..models.errors import (
    CropNotOpenError,
    NoImageLoadedError,
    SessionBusyError,
)
from ..models.filter_state import FilterState
from ..models.scene import Viewport
from ..services.image_service import ImageService
from ..services.filter_service import FilterService
from ..services.scene_service import SceneService
from ..services.cropping_service import CroppingService

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    EMPTY = "empty"              # nothing uploaded yet
    CLEAN = "clean"              # displayed == source, filters at defaults
    PREVIEWING = "previewing"    # a filter, point operation or background matte is shown


@dataclass(frozen=True)
class ProcessingTicket:
    """Handle for a long-running operation started against one source generation."""
    generation: int
    image: Image


class EditingSession:
    """Manages state for a single user's editing session."""

    def __init__(
        self,
        session_id: str = None,
        *,
        image_service: ImageService = None,
        filter_service: FilterService = None,
        scene_service: SceneService = None,
        cropping_service: CroppingService = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.image_service = image_service or ImageService()
        self.filter_service = filter_service or FilterService()
        self.scene = scene_service or SceneService()
        self.cropping_service = cropping_service or CroppingService(self.image_service)

        self._lock = threading.RLock()
        self.source: Optional[Image] = None
        self.displayed: Optional[Image] = None
        self.filter_state = FilterState()
        self.generation = 0
        self.crop_open = False

        self._pending: Optional[ProcessingTicket] = None
        self._upload_seq = 0
        self._installed_upload = 0
        self._uploads_in_flight: set = set()
        self._matted = False

    # ─── State queries ─────────────────────────────────────────────
    @property
    def busy(self) -> bool:
        with self._lock:
            return self._pending is not None or bool(self._uploads_in_flight)

    @property
    def status(self) -> SessionStatus:
        with self._lock:
            if self.source is None:
                return SessionStatus.EMPTY
            if self.filter_state.is_default and not self._matted:
                return SessionStatus.CLEAN
            return SessionStatus.PREVIEWING

    def _require_image(self) -> Image:
        if self.source is None:
            raise NoImageLoadedError("No image uploaded")
        return self.source

    def _require_idle(self) -> None:
        if self._pending is not None or self._uploads_in_flight:
            raise SessionBusyError(f"Session {self.session_id} is processing")

    # ─── Commit ────────────────────────────────────────────────────
    def install_source(self, image: Image) -> Image:
        """
        Replace the baseline image. Filters reset, crop closes, any pending
        result for the previous image becomes stale.
        """
        source = image if image.is_frozen else self.image_service.freeze(image)
        state = FilterState()
        displayed = self.filter_service.apply(source, state)
        with self._lock:
            self.source, self.displayed, self.filter_state = source, displayed, state
            self._matted = False
            self.generation += 1
            self._pending = None
            self.crop_open = False
            self.scene.clear()
            logger.info(
                f"Session {self.session_id}: source {source.width}x{source.height} "
                f"installed (generation {self.generation})"
            )
        return source

    def load_upload(self, data: bytes, filename: str = None) -> Optional[Image]:
        """
        Decode and install an upload. Returns None when a newer upload is
        still decoding or already installed (this one is discarded). A newer
        upload that fails to decode does not block an older one.
        """
        with self._lock:
            self._upload_seq += 1
            seq = self._upload_seq
            self._uploads_in_flight.add(seq)
        try:
            image = self.image_service.decode_upload(data, filename)
        finally:
            with self._lock:
                self._uploads_in_flight.discard(seq)

        with self._lock:
            newest = max(self._uploads_in_flight | {self._installed_upload})
            if seq < newest:
                logger.warning(f"Session {self.session_id}: dropping superseded upload {filename!r}")
                return None
            self._installed_upload = seq
            return self.install_source(image)

    # ─── Filters ───────────────────────────────────────────────────
    def _swap_filters(self, state: FilterState) -> Image:
        source = self._require_image()
        displayed = self.filter_service.apply(source, state)
        self.displayed, self.filter_state = displayed, state
        self._matted = False
        return displayed

    def apply_point_operation(self, op) -> Image:
        with self._lock:
            self._require_idle()
            self._require_image()
            state = self.filter_state.with_point_operation(op)
            logger.info(f"Session {self.session_id}: point operation {state.point_operation.value}")
            return self._swap_filters(state)

    def update_filter(self, name: str, value: float) -> Image:
        """Change one continuous parameter and re-render from the source with the full vector."""
        with self._lock:
            self._require_idle()
            self._require_image()
            state = self.filter_state.with_parameter(name, value)
            logger.debug(f"Session {self.session_id}: {name}={value}")
            return self._swap_filters(state)

    def reset(self) -> Image:
        with self._lock:
            self._require_idle()
            self._require_image()
            logger.info(f"Session {self.session_id}: reset to original")
            return self._swap_filters(FilterState())

    # ─── Crop ──────────────────────────────────────────────────────
    def open_crop(self, viewport: Viewport = None):
        with self._lock:
            self._require_idle()
            source = self._require_image()
            transform = self.scene.load_image(source, viewport)
            self.crop_open = True
            return transform, self.scene.selection

    def update_selection(self, left, top, width, height, scale_x=1.0, scale_y=1.0):
        with self._lock:
            self._require_idle()
            if not self.crop_open:
                raise CropNotOpenError("Crop tool is not open")
            return self.scene.update_selection(left, top, width, height, scale_x, scale_y)

    def confirm_crop(self) -> Image:
        """
        Extract the selection at full resolution and commit it as the new
        source. On EmptyCropError nothing changes and the crop stays open.
        """
        with self._lock:
            self._require_idle()
            source = self._require_image()
            if not self.crop_open or self.scene.transform is None or self.scene.selection is None:
                raise CropNotOpenError("No crop selection to confirm")

            cropped = self.cropping_service.extract(source, self.scene.transform, self.scene.selection)
            viewport = self.scene.viewport
            self.install_source(cropped)
            self.scene.load_image(self.source, viewport)
            return self.source

    def cancel_crop(self) -> None:
        with self._lock:
            self.crop_open = False
            self.scene.clear()
            logger.debug(f"Session {self.session_id}: crop cancelled")

    # ─── Long-running work ─────────────────────────────────────────
    def begin_background_removal(self) -> ProcessingTicket:
        with self._lock:
            self._require_idle()
            source = self._require_image()
            self._pending = ProcessingTicket(self.generation, source)
            return self._pending

    def complete_background_removal(self, ticket: ProcessingTicket, result: Image) -> bool:
        """Install *result* as the displayed image unless the source changed meanwhile."""
        with self._lock:
            if self._pending is ticket:
                self._pending = None
            if ticket.generation != self.generation:
                logger.warning(
                    f"Session {self.session_id}: dropping stale background removal "
                    f"(generation {ticket.generation}, current {self.generation})"
                )
                return False
            self.displayed = result
            self._matted = True
            logger.info(f"Session {self.session_id}: background removal applied")
            return True

    def fail_background_removal(self, ticket: ProcessingTicket) -> None:
        with self._lock:
            if self._pending is ticket:
                self._pending = None

    def remove_background(self, background_service) -> Optional[Image]:
        """Run background removal synchronously through the ticket protocol."""
        ticket = self.begin_background_removal()
        try:
            result = background_service.remove_background(ticket.image)
        except Exception:
            self.fail_background_removal(ticket)
            raise
        return result if self.complete_background_removal(ticket, result) else None

    # ─── Export ────────────────────────────────────────────────────
    def export_png(self) -> bytes:
        with self._lock:
            if self.displayed is None:
                raise NoImageLoadedError("There's no image to save.")
            displayed = self.displayed
        return self.image_service.encode_png(displayed)

    def summary(self) -> dict:
        with self._lock:
            data = {
                "session_id": self.session_id,
                "status": self.status.value,
                "generation": self.generation,
                "busy": self.busy,
                "filters": self.filter_state.to_dict(),
                "crop_open": self.crop_open,
            }
            if self.source is not None:
                data["width"] = self.source.width
                data["height"] = self.source.height
            if self.crop_open and self.scene.transform is not None:
                image_box = self.scene.image_scene_bounds()
                box = self.scene.selection.box()
                data["scene"] = {
                    "scale_factor": self.scene.transform.scale_factor,
                    "image": {"left": image_box.x, "top": image_box.y,
                              "width": image_box.w, "height": image_box.h},
                    "selection": {"left": box.x, "top": box.y, "width": box.w, "height": box.h},
                }
            return data

    def clear(self) -> None:
        """Drop all images from memory."""
        with self._lock:
            self.source = None
            self.displayed = None
            self.filter_state = FilterState()
            self.generation += 1
            self._matted = False
            self._pending = None
            self.crop_open = False
            self.scene.clear()

