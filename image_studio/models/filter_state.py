from __future__ import annotations
import math
from dataclasses import dataclass, fields, replace
from enum import Enum

from .errors import InvalidFilterValueError, UnknownFilterError


class PointOperation(str, Enum):
    """Mutually exclusive one-shot operations. Never stacked."""
    NONE = "none"
    GRAYSCALE = "grayscale"
    INVERT = "invert"

    @classmethod
    def parse(cls, value: str | PointOperation) -> PointOperation:
        if isinstance(value, cls):
            return value
        aliases = {"bw": cls.GRAYSCALE, "negative": cls.INVERT}
        key = str(value).strip().lower()
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            raise UnknownFilterError(f"Unknown point operation: {value!r}") from None


# Slider ranges of the editing UI: name → (min, max)
PARAMETER_RANGES = {
    "blur":            (0.0, 10.0),
    "brightness":      (-50.0, 50.0),
    "contrast":        (-50.0, 50.0),
    "saturation":      (-50.0, 100.0),
    "sharpness":       (0.0, 50.0),
    "noise_reduction": (0.0, 50.0),
}

_NAME_ALIASES = {"noiseReduction": "noise_reduction"}


@dataclass(frozen=True)
class FilterState:
    """
    Value-object holding the full filter vector in slider units.

    brightness/contrast/saturation are percentage offsets from 100 %,
    blur is a slider value (radius = blur * BLUR_RADIUS_FACTOR px),
    sharpness/noise_reduction only gate secondary passes when > 0.
    """
    blur:            float = 0.0     # [0 , 10]
    brightness:      float = 0.0     # [-50 , +50]
    contrast:        float = 0.0     # [-50 , +50]
    saturation:      float = 0.0     # [-50 , +100]
    sharpness:       float = 0.0     # [0 , 50]
    noise_reduction: float = 0.0     # [0 , 50]
    point_operation: PointOperation = PointOperation.NONE

    # ── Parameter access ─────────────────────────────────────────────
    @staticmethod
    def canonical_name(name: str) -> str:
        """Map UI names (camelCase included) onto field names."""
        canonical = _NAME_ALIASES.get(name, name)
        if canonical not in PARAMETER_RANGES:
            raise UnknownFilterError(f"Unknown filter: {name!r}")
        return canonical

    def with_parameter(self, name: str, value: float) -> FilterState:
        """
        Return a new state with one continuous parameter changed (clamped into
        its range). Any point operation is dropped: continuous previews are
        never layered on top of a point operation.
        """
        canonical = self.canonical_name(name)
        value = float(value)
        if not math.isfinite(value):
            raise InvalidFilterValueError(f"{name} must be finite, got {value!r}")
        lo, hi = PARAMETER_RANGES[canonical]
        clamped = min(max(value, lo), hi)
        return replace(self, **{canonical: clamped}, point_operation=PointOperation.NONE)

    def with_point_operation(self, op: str | PointOperation) -> FilterState:
        return replace(self, point_operation=PointOperation.parse(op))

    def continuous(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name in PARAMETER_RANGES}

    # ── State helpers ────────────────────────────────────────────────
    @property
    def is_default(self) -> bool:
        return self == FilterState()

    @property
    def has_continuous(self) -> bool:
        return any(v != 0 for v in self.continuous().values())

    # ── Numeric mapping used by the pipeline ─────────────────────────
    def blur_radius(self, factor: float = 0.5) -> float:
        return self.blur * factor

    @property
    def brightness_factor(self) -> float:
        return (100.0 + self.brightness) / 100.0

    @property
    def contrast_factor(self) -> float:
        return (100.0 + self.contrast) / 100.0

    @property
    def saturation_factor(self) -> float:
        return (100.0 + self.saturation) / 100.0

    def to_dict(self) -> dict:
        data = self.continuous()
        data["point_operation"] = self.point_operation.value
        return data
