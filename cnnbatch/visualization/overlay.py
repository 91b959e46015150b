"""検出マスクとボックスを画像へ重ねる."""

from typing import Iterable

import numpy as np
from PIL import Image, ImageDraw

from cnnbatch.inference.types import Detection

from .palette import ClassColorMap, Color

DEFAULT_ALPHA = 0.7
BOX_OUTLINE_COLOR: Color = (1, 0, 0)


def blend_mask(
    image: np.ndarray, detection: Detection, color: Color, alpha: float = DEFAULT_ALPHA
) -> None:
    """マスク画素をクラス色とαブレンドする (画像を直接書き換える).

    マスク外の画素は元の値のまま残る.

    Args:
        image: (H, W, 3) uint8 RGB 画像.
        detection: マスク付きの検出結果.
        color: クラス色.
        alpha: クラス色の重み.
    """
    if detection.mask is None:
        return
    x1, y1 = int(detection.box[0]), int(detection.box[1])
    height, width = detection.mask.shape
    roi = image[y1 : y1 + height, x1 : x1 + width]

    colored = roi.astype(np.float32)
    colored[detection.mask] = color
    blended = alpha * colored + (1.0 - alpha) * roi.astype(np.float32)
    roi[...] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)


def draw_box(image: np.ndarray, detection: Detection, color: Color = BOX_OUTLINE_COLOR) -> None:
    """検出ボックスの外枠を1画素幅で描く (画像を直接書き換える)."""
    x1, y1 = int(detection.box[0]), int(detection.box[1])
    x2, y2 = x1 + detection.width - 1, y1 + detection.height - 1
    canvas = Image.fromarray(image)
    ImageDraw.Draw(canvas).rectangle([x1, y1, x2, y2], outline=color, width=1)
    image[...] = np.asarray(canvas)


class MaskOverlayRenderer:
    """検出結果をクラス色で描画する.

    色は ClassColorMap によって描画順の初出で決まる.
    """

    def __init__(
        self, color_map: ClassColorMap | None = None, alpha: float = DEFAULT_ALPHA
    ) -> None:
        """描画設定を初期化.

        Args:
            color_map: クラス色の割り当て. 省略時はCityscapesパレット.
            alpha: マスクのαブレンド係数.
        """
        self.color_map = color_map or ClassColorMap()
        self.alpha = alpha

    def render_detection(self, image: np.ndarray, detection: Detection) -> None:
        """検出1件を画像へ直接描画する."""
        color = self.color_map.color_of(detection.class_id)
        blend_mask(image, detection, color, self.alpha)
        draw_box(image, detection)

    def render(self, image: np.ndarray, detections: Iterable[Detection]) -> np.ndarray:
        """検出群を描画した画像のコピーを返す."""
        output = image.copy()
        for detection in detections:
            self.render_detection(output, detection)
        return output
