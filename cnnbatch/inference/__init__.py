"""推論実行 (モデルハンドル, バッチアダプタ, 結果型) を提供するモジュール."""

from .batch_adapter import BatchAdapter, FetchResults, blob_to_image, image_to_blob
from .model_handle import BlobMap, InferRequest, ModelHandle, load_model
from .types import Detection, FaceInferenceResults, HeadPoseAngles

__all__ = [
    "BatchAdapter",
    "BlobMap",
    "Detection",
    "FaceInferenceResults",
    "FetchResults",
    "HeadPoseAngles",
    "InferRequest",
    "ModelHandle",
    "blob_to_image",
    "image_to_blob",
    "load_model",
]
