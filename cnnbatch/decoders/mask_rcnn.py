"""Mask R-CNN系の検出出力とマスク出力のデコーダ.

検出出力は1行 (batch, class, prob, x1, y1, x2, y2) の正規化座標で,
batch < 0 の行以降は無効. マスク出力は (BOXES, C, H, W) で,
行番号とクラスID-1でスラブを選ぶ.
"""

import logging
from typing import List, Mapping, Sequence

import numpy as np

from cnnbatch.errors import LogicError, OutputBlobError
from cnnbatch.inference.types import Detection
from cnnbatch.logging import LoggerManager
from cnnbatch.utils.image_io import resize_plane

logger: logging.Logger = LoggerManager().get_logger(__name__)

PROBABILITY_THRESHOLD = 0.2
MASK_THRESHOLD = 0.5
BOX_DESCRIPTION_SIZE = 7


def _scale(value: np.float32, size: int) -> np.float32:
    """正規化座標を画素座標へ変換し, [0, size] に収める."""
    limit = np.float32(size)
    return min(max(np.float32(0.0), value * limit), limit)


class MaskRcnnDecoder:
    """検出出力とマスク出力からDetectionを組み立てる.

    Attributes:
        batch_size: ネットワークに設定されたバッチサイズ
        detection_output_name: 検出出力の名前
        masks_name: マスク出力の名前
        probability_threshold: 採用する検出確率の下限 (この値を超えるものを採用)
        mask_threshold: マスク画素を前景とみなす下限
    """

    def __init__(
        self,
        batch_size: int,
        detection_output_name: str = "reshape_do_2d",
        masks_name: str = "masks",
        probability_threshold: float = PROBABILITY_THRESHOLD,
        mask_threshold: float = MASK_THRESHOLD,
    ) -> None:
        """デコーダを初期化."""
        self.batch_size = batch_size
        self.detection_output_name = detection_output_name
        self.masks_name = masks_name
        self.probability_threshold = probability_threshold
        self.mask_threshold = mask_threshold

    def _get(self, blobs: Mapping[str, np.ndarray], name: str) -> np.ndarray:
        if name not in blobs:
            raise OutputBlobError(
                f"出力ブロブ '{name}' が存在しません (出力: {', '.join(blobs)})"
            )
        return blobs[name]

    def decode(
        self,
        blobs: Mapping[str, np.ndarray],
        images: Sequence[np.ndarray],
        chunk_size: int,
        batch_offset: int = 0,
    ) -> List[Detection]:
        """1チャンク分の出力をデコードする.

        Args:
            blobs: 出力名から配列への対応 (BatchAdapterのコールバック引数).
            images: チャンクに含まれる元画像 (座標のスケールに使う).
            chunk_size: チャンクの有効件数.
            batch_offset: チャンク先頭画像の通し番号.

        Returns:
            採用された検出結果のリスト. マスクはコピー済み.

        Raises:
            LogicError: バッチIDが設定バッチサイズ以上, またはクラスIDに
                対応するマスクチャンネルがない場合.
        """
        detections_blob = self._get(blobs, self.detection_output_name)
        masks_blob = self._get(blobs, self.masks_name)

        description_size = detections_blob.shape[-1]
        if description_size < BOX_DESCRIPTION_SIZE:
            raise LogicError(
                f"検出出力の最終次元は{BOX_DESCRIPTION_SIZE}以上必要です: {detections_blob.shape}"
            )
        if masks_blob.ndim != 4:
            raise LogicError(f"マスク出力は4次元である必要があります: {masks_blob.shape}")

        rows = detections_blob.reshape(-1, description_size).astype(np.float32, copy=False)
        num_boxes, num_channels, _, _ = masks_blob.shape

        detections: List[Detection] = []
        for box_index in range(min(num_boxes, len(rows))):
            box_info = rows[box_index]
            batch = int(box_info[0])
            if batch < 0:
                break
            if batch >= self.batch_size:
                raise LogicError("検出出力に無効なバッチIDが含まれています")
            if batch >= chunk_size:
                logger.debug(f"パディングスロット {batch} の検出を読み飛ばします")
                continue

            image_height, image_width = images[batch].shape[:2]
            # 座標と確率は出力テンソルと同じfloat32で計算する
            probability = box_info[2]
            x1 = _scale(box_info[3], image_width)
            y1 = _scale(box_info[4], image_height)
            x2 = _scale(box_info[5], image_width)
            y2 = _scale(box_info[6], image_height)
            box_width = int(x2 - x1)
            box_height = int(y2 - y1)
            class_id = int(float(box_info[1]) + 1e-6)

            if not (
                probability > np.float32(self.probability_threshold)
                and box_width > 0
                and box_height > 0
            ):
                continue

            channel = class_id - 1
            if not 0 <= channel < num_channels:
                raise LogicError(
                    f"クラスID {class_id} に対応するマスクチャンネルがありません "
                    f"(チャンネル数: {num_channels})"
                )
            slab = masks_blob[box_index, channel]
            resized = resize_plane(slab, (box_width, box_height))
            mask = resized > self.mask_threshold

            logger.info(
                f"Detected class {class_id} with probability {probability:.6g} "
                f"from batch {batch_offset + batch}: "
                f"[{x1:.6g}, {y1:.6g}], [{x2:.6g}, {y2:.6g}]"
            )
            detections.append(
                Detection(
                    batch_index=batch_offset + batch,
                    class_id=class_id,
                    probability=float(probability),
                    box=(float(x1), float(y1), float(x2), float(y2)),
                    mask=mask.copy(),
                )
            )

        return detections
