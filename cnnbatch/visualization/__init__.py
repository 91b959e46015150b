"""検出結果の可視化モジュール."""

from .overlay import BOX_OUTLINE_COLOR, MaskOverlayRenderer, blend_mask, draw_box
from .palette import CITYSCAPES_COLORS, ClassColorMap

__all__ = [
    "BOX_OUTLINE_COLOR",
    "CITYSCAPES_COLORS",
    "ClassColorMap",
    "MaskOverlayRenderer",
    "blend_mask",
    "draw_box",
]
