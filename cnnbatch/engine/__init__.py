"""推論エンジンのバックエンドを提供するモジュール."""

from .interfaces import BatchMode, ICompiledNetwork, IInferenceBackend, TensorInfo

BACKEND_NAMES = ("onnxruntime", "openvino")


def create_backend(name: str) -> IInferenceBackend:
    """名前からバックエンドを生成する.

    OpenVINOはオプション依存のため, 指定された場合のみimportする.

    Args:
        name: バックエンド名 (onnxruntime / openvino).

    Returns:
        バックエンドインスタンス.

    Raises:
        ValueError: 未知のバックエンド名の場合.
    """
    if name == "onnxruntime":
        from .onnx_backend import OnnxRuntimeBackend

        return OnnxRuntimeBackend()
    if name == "openvino":
        from .openvino_backend import OpenVinoBackend

        return OpenVinoBackend()
    raise ValueError(f"未知のバックエンドです: {name} (選択肢: {BACKEND_NAMES})")


__all__ = [
    "BACKEND_NAMES",
    "BatchMode",
    "ICompiledNetwork",
    "IInferenceBackend",
    "TensorInfo",
    "create_backend",
]
