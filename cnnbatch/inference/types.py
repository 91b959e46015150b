"""推論結果のデータ型."""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class HeadPoseAngles:
    """頭部姿勢角 (度).

    Args:
        yaw: ヨー角.
        pitch: ピッチ角.
        roll: ロール角.
    """

    yaw: float
    pitch: float
    roll: float


@dataclass(frozen=True)
class Detection:
    """検出ボックス1件分の結果.

    Args:
        batch_index: 入力画像のインデックス (推論呼び出し全体での通し番号).
        class_id: クラスID.
        probability: 検出確率.
        box: 画素座標の (x1, y1, x2, y2).
        mask: ボックスサイズ (高さ, 幅) の二値マスク.
    """

    batch_index: int
    class_id: int
    probability: float
    box: Tuple[float, float, float, float]
    mask: Optional[np.ndarray] = field(default=None, compare=False, repr=False)

    @property
    def width(self) -> int:
        """ボックスの幅 (画素)."""
        return int(self.box[2] - self.box[0])

    @property
    def height(self) -> int:
        """ボックスの高さ (画素)."""
        return int(self.box[3] - self.box[1])


@dataclass
class FaceInferenceResults:
    """顔1件分の推論結果.

    Args:
        face_bounding_box: 顔領域 (x, y, width, height).
        head_pose_angles: 推定した頭部姿勢角.
    """

    face_bounding_box: Tuple[int, int, int, int]
    head_pose_angles: Optional[HeadPoseAngles] = None
