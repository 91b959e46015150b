"""頭部姿勢推定 (yaw, pitch, roll) のデコーダ."""

import logging
from typing import List, Mapping, Sequence

import numpy as np

from cnnbatch.errors import LoadError, OutputBlobError
from cnnbatch.inference.batch_adapter import BatchAdapter
from cnnbatch.inference.model_handle import BlobMap, ModelHandle
from cnnbatch.inference.types import FaceInferenceResults, HeadPoseAngles
from cnnbatch.logging import LoggerManager

logger: logging.Logger = LoggerManager().get_logger(__name__)

ANGLE_OUTPUT_NAMES = ("angle_y_fc", "angle_p_fc", "angle_r_fc")


def decode_head_pose(
    blobs: Mapping[str, np.ndarray], batch_size: int
) -> List[HeadPoseAngles]:
    """出力ブロブから件数分の頭部姿勢角を取り出す. しきい値処理は行わない.

    角度ごとの3出力 (angle_y_fc, angle_p_fc, angle_r_fc) か,
    1件あたり3値を持つ単一出力のどちらかに対応する.

    Args:
        blobs: 出力名から配列への対応.
        batch_size: 有効件数.

    Returns:
        HeadPoseAnglesのリスト.

    Raises:
        OutputBlobError: どちらの出力構成にも当てはまらない場合.
    """
    if all(name in blobs for name in ANGLE_OUTPUT_NAMES):
        yaw, pitch, roll = (
            blobs[name].reshape(blobs[name].shape[0], -1)[:, 0]
            for name in ANGLE_OUTPUT_NAMES
        )
        return [
            HeadPoseAngles(yaw=float(yaw[b]), pitch=float(pitch[b]), roll=float(roll[b]))
            for b in range(batch_size)
        ]

    if len(blobs) == 1:
        blob = next(iter(blobs.values()))
        values = blob.reshape(blob.shape[0], -1)
        if values.shape[1] >= 3:
            return [
                HeadPoseAngles(
                    yaw=float(values[b, 0]),
                    pitch=float(values[b, 1]),
                    roll=float(values[b, 2]),
                )
                for b in range(batch_size)
            ]

    raise OutputBlobError(
        f"頭部姿勢の出力構成が不正です: {', '.join(blobs)} "
        f"(期待: {', '.join(ANGLE_OUTPUT_NAMES)} または3値の単一出力)"
    )


def crop_face(image: np.ndarray, face_box: Sequence[int]) -> np.ndarray:
    """顔領域を画像内に収まるよう切り出す.

    Args:
        image: (H, W, C) 画像.
        face_box: (x, y, width, height).

    Returns:
        切り出した画像.

    Raises:
        ValueError: 切り出し領域が空の場合.
    """
    x, y, width, height = (int(v) for v in face_box)
    image_height, image_width = image.shape[:2]
    x1, y1 = max(0, x), max(0, y)
    x2, y2 = min(image_width, x + width), min(image_height, y + height)
    if x2 <= x1 or y2 <= y1:
        raise ValueError(f"顔領域が画像外です: {tuple(face_box)}")
    return image[y1:y2, x1:x2]


class HeadPoseEstimator:
    """顔画像から頭部姿勢角を推定する."""

    model_type = "Head Pose Estimation"

    def __init__(self, handle: ModelHandle, swap_rb: bool = True) -> None:
        """推定器を初期化.

        Raises:
            LoadError: 出力構成が頭部姿勢モデルと一致しない場合.
        """
        outputs = handle.output_names
        if not (set(ANGLE_OUTPUT_NAMES) <= set(outputs) or len(outputs) == 1):
            raise LoadError(f"{self.model_type}モデルの出力ではありません: {outputs}")
        if not set(ANGLE_OUTPUT_NAMES) <= set(outputs):
            dims = handle.network.outputs[0].shape[1:]
            if all(dim is not None for dim in dims) and int(np.prod(dims)) < 3:
                raise LoadError(
                    f"{self.model_type}モデルの単一出力は1件あたり3値以上必要です: "
                    f"{outputs[0]} {handle.network.outputs[0].shape}"
                )
        self.adapter = BatchAdapter(handle, swap_rb=swap_rb)

    def estimate_batch(self, faces: Sequence[np.ndarray]) -> List[HeadPoseAngles]:
        """切り出し済みの顔画像列から頭部姿勢角を推定する."""
        results: List[HeadPoseAngles] = []

        def fetch_results(blobs: BlobMap, batch_size: int) -> None:
            results.extend(decode_head_pose(blobs, batch_size))

        self.adapter.infer_batch(faces, fetch_results)
        return results

    def estimate(
        self, image: np.ndarray, face: FaceInferenceResults
    ) -> HeadPoseAngles:
        """画像中の顔1件の頭部姿勢角を推定し, 結果を face に格納する.

        Args:
            image: (H, W, C) 画像.
            face: 顔領域を持つ推論結果.

        Returns:
            推定した頭部姿勢角.
        """
        crop = crop_face(image, face.face_bounding_box)
        angles = self.estimate_batch([crop])[0]
        face.head_pose_angles = angles
        logger.debug(
            f"yaw={angles.yaw:.1f} pitch={angles.pitch:.1f} roll={angles.roll:.1f}"
        )
        return angles
