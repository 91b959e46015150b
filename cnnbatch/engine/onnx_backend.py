"""ONNX Runtimeによる推論バックエンド."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import onnxruntime as ort

from cnnbatch.errors import LoadError
from cnnbatch.logging import LoggerManager

from .interfaces import BatchMode, TensorInfo

logger: logging.Logger = LoggerManager().get_logger(__name__)

_ORT_DTYPES: Dict[str, np.dtype] = {
    "tensor(float)": np.dtype(np.float32),
    "tensor(float16)": np.dtype(np.float16),
    "tensor(double)": np.dtype(np.float64),
    "tensor(uint8)": np.dtype(np.uint8),
    "tensor(int8)": np.dtype(np.int8),
    "tensor(int32)": np.dtype(np.int32),
    "tensor(int64)": np.dtype(np.int64),
}

GPU_DEVICE_NAMES = ("GPU", "CUDA")


def check_gpu_availability() -> bool:
    """GPU(CUDAExecutionProvider)の利用可否をチェック.

    Returns:
        CUDAExecutionProviderが利用可能な場合True
    """
    return "CUDAExecutionProvider" in ort.get_available_providers()


def _to_tensor_info(node: Any) -> TensorInfo:
    """NodeArgをTensorInfoへ変換する. シンボリック次元はNoneにする."""
    dims: Tuple[Optional[int], ...] = tuple(
        dim if isinstance(dim, int) else None for dim in node.shape
    )
    dtype = _ORT_DTYPES.get(node.type)
    if dtype is None:
        raise LoadError(f"未対応のテンソル型です: {node.name} ({node.type})")
    return TensorInfo(name=node.name, shape=dims, dtype=dtype)


def negotiate_batch(
    declared_batch: Optional[int], max_batch_size: int
) -> Tuple[int, BatchMode]:
    """宣言されたバッチ次元と要求値からバッチモードを決める.

    Args:
        declared_batch: モデルが宣言するバッチ次元. 動的ならNone.
        max_batch_size: 要求する最大バッチサイズ.

    Returns:
        (バッチサイズ, バッチモード) のタプル.

    Raises:
        LoadError: 固定バッチが要求値とも1とも一致しない場合.
    """
    if declared_batch is None:
        return max_batch_size, BatchMode.DYNAMIC
    if declared_batch == max_batch_size:
        return max_batch_size, BatchMode.STATIC
    if declared_batch == 1:
        return 1, BatchMode.SINGLE_FALLBACK
    raise LoadError(
        f"モデルの固定バッチサイズ({declared_batch})は "
        f"要求されたバッチサイズ({max_batch_size})に変更できません"
    )


class OnnxCompiledNetwork:
    """InferenceSessionをICompiledNetworkとして扱うラッパー.

    Attributes:
        session: ONNXランタイムセッション
        use_gpu: GPU使用フラグ
    """

    def __init__(
        self, session: ort.InferenceSession, max_batch_size: int, use_gpu: bool
    ) -> None:
        """セッションからテンソル情報を取り出し, バッチ交渉を行う.

        Args:
            session: 作成済みのONNXランタイムセッション.
            max_batch_size: 要求する最大バッチサイズ.
            use_gpu: CUDAExecutionProviderを使用しているか.
        """
        self.session = session
        self.use_gpu = use_gpu
        declared_inputs = [_to_tensor_info(node) for node in session.get_inputs()]
        self._outputs = [_to_tensor_info(node) for node in session.get_outputs()]

        image_inputs = [info for info in declared_inputs if info.rank == 4]
        if not image_inputs:
            raise LoadError("4次元の画像入力を持たないネットワークです")

        self._batch_size, self._batch_mode = negotiate_batch(
            image_inputs[0].shape[0], max_batch_size
        )
        self._inputs: List[TensorInfo] = []
        for info in declared_inputs:
            if info.rank == 4:
                info = TensorInfo(
                    name=info.name,
                    shape=(self._batch_size,) + info.shape[1:],
                    dtype=info.dtype,
                )
            self._inputs.append(info)

    @property
    def inputs(self) -> List[TensorInfo]:
        """入力テンソル情報."""
        return self._inputs

    @property
    def outputs(self) -> List[TensorInfo]:
        """出力テンソル情報."""
        return self._outputs

    @property
    def batch_size(self) -> int:
        """交渉後のバッチサイズ."""
        return self._batch_size

    @property
    def batch_mode(self) -> BatchMode:
        """交渉結果."""
        return self._batch_mode

    def infer(self, feeds: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        """入力をモデルの型へ変換して同期推論を実行する."""
        typed_feeds = {
            info.name: feeds[info.name].astype(info.dtype, copy=False)
            for info in self._inputs
        }
        output_names = [info.name for info in self._outputs]
        results = self.session.run(output_names, typed_feeds)
        return dict(zip(output_names, results))


class OnnxRuntimeBackend:
    """ONNX Runtimeでモデルをロードするバックエンド."""

    name = "onnxruntime"

    def compile(
        self, model_path: Path, device: str, max_batch_size: int
    ) -> OnnxCompiledNetwork:
        """ONNXセッションを作成し, バッチ交渉を済ませたネットワークを返す.

        Args:
            model_path: ONNXモデルファイルパス.
            device: デバイス名. GPU/CUDAならCUDAExecutionProviderを優先する.
            max_batch_size: 要求する最大バッチサイズ.

        Returns:
            ロード済みネットワーク.

        Raises:
            LoadError: セッション作成に失敗した場合.
        """
        use_gpu = device.upper() in GPU_DEVICE_NAMES
        providers: List[str] = []
        if use_gpu:
            if check_gpu_availability():
                providers.append("CUDAExecutionProvider")
            else:
                logger.warning(
                    "CUDAExecutionProviderが利用できません. CPUで実行します."
                )
                logger.warning(
                    "GPUを使用するには onnxruntime-gpu をインストールしてください: "
                    "pip install onnxruntime-gpu"
                )
                use_gpu = False
        providers.append("CPUExecutionProvider")

        try:
            session = ort.InferenceSession(str(model_path), providers=providers)
        except Exception as e:
            raise LoadError(f"ONNXモデルを読み込めません: {model_path}: {e}") from e
        logger.debug(f"実行プロバイダー: {session.get_providers()}")

        return OnnxCompiledNetwork(session, max_batch_size, use_gpu)
