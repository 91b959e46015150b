"""
cnnbatch: 推論エンジンのバッチ推論アダプタとデモ群.

画像をネットワーク入力テンソルへ詰めてチャンク単位で推論し,
出力テンソルを頭部姿勢・検出+マスク・埋め込みベクトルへデコードする.

Example:
    >>> from cnnbatch import VectorCNN, load_model
    >>> handle = load_model("reid.onnx", device="CPU", max_batch_size=8)
    >>> vectors = VectorCNN(handle).compute_batch(images)
"""

from .decoders import HeadPoseEstimator, MaskRcnnDecoder, VectorCNN
from .engine import BatchMode
from .errors import ConfigurationError, LoadError, LogicError, OutputBlobError
from .inference import (
    BatchAdapter,
    BlobMap,
    Detection,
    FaceInferenceResults,
    HeadPoseAngles,
    ModelHandle,
    load_model,
)
from .logging import LoggerManager

__version__ = "0.1.0"

__all__ = [
    "BatchAdapter",
    "BatchMode",
    "BlobMap",
    "ConfigurationError",
    "Detection",
    "FaceInferenceResults",
    "HeadPoseAngles",
    "HeadPoseEstimator",
    "LoadError",
    "LoggerManager",
    "LogicError",
    "MaskRcnnDecoder",
    "ModelHandle",
    "OutputBlobError",
    "VectorCNN",
    "load_model",
]
