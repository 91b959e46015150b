"""推論出力を結果オブジェクトへ変換するデコーダ群."""

from .head_pose import ANGLE_OUTPUT_NAMES, HeadPoseEstimator, crop_face, decode_head_pose
from .mask_rcnn import MASK_THRESHOLD, PROBABILITY_THRESHOLD, MaskRcnnDecoder
from .vector_cnn import VectorCNN, reshape_vector

__all__ = [
    "ANGLE_OUTPUT_NAMES",
    "HeadPoseEstimator",
    "MASK_THRESHOLD",
    "MaskRcnnDecoder",
    "PROBABILITY_THRESHOLD",
    "VectorCNN",
    "crop_face",
    "decode_head_pose",
    "reshape_vector",
]
