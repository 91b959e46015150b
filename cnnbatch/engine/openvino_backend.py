"""OpenVINOによる推論バックエンド.

画像入力はu8/NCHW, その他の入力と全ての出力はf32になるよう
PrePostProcessorで精度を揃えてからコンパイルする.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import openvino as ov
from openvino.preprocess import PrePostProcessor

from cnnbatch.errors import LoadError
from cnnbatch.logging import LoggerManager

from .interfaces import BatchMode, TensorInfo

logger: logging.Logger = LoggerManager().get_logger(__name__)


def _partial_dims(port: Any) -> Tuple[Optional[int], ...]:
    """ポートの部分形状をタプルへ変換する. 動的次元はNone."""
    return tuple(
        dim.get_length() if dim.is_static else None for dim in port.get_partial_shape()
    )


class OpenVinoCompiledNetwork:
    """CompiledModelをICompiledNetworkとして扱うラッパー."""

    def __init__(
        self,
        compiled_model: Any,
        inputs: List[TensorInfo],
        batch_size: int,
        batch_mode: BatchMode,
    ) -> None:
        """コンパイル済みモデルから推論リクエストを1つ作成する.

        Args:
            compiled_model: ``ov.CompiledModel``.
            inputs: 精度設定後の入力テンソル情報.
            batch_size: 交渉後のバッチサイズ.
            batch_mode: 交渉結果.
        """
        self.compiled_model = compiled_model
        self.request = compiled_model.create_infer_request()
        self._inputs = inputs
        self._outputs = [
            TensorInfo(
                name=port.get_any_name(),
                shape=_partial_dims(port),
                dtype=np.dtype(np.float32),
            )
            for port in compiled_model.outputs
        ]
        self._batch_size = batch_size
        self._batch_mode = batch_mode

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
        """同期推論を実行し, 出力テンソルのビューを返す."""
        self.request.infer(feeds)
        return {
            info.name: self.request.get_tensor(info.name).data for info in self._outputs
        }


class OpenVinoBackend:
    """OpenVINO Runtimeでモデルをロードするバックエンド."""

    name = "openvino"

    def __init__(self, core: Optional[Any] = None) -> None:
        """OpenVINO Coreを初期化する.

        Args:
            core: 共有する ``ov.Core``. 省略時は新規作成.
        """
        self.core = core if core is not None else ov.Core()

    def _read_model(self, model_path: Path, batch: Any) -> Tuple[Any, List[TensorInfo]]:
        """モデルを読み込み, バッチ次元の変更と精度設定を行う.

        Args:
            model_path: IR(.xml)またはONNXモデルのパス.
            batch: 画像入力のバッチ次元 (int または ov.Dimension).

        Returns:
            (前処理済みモデル, 入力テンソル情報) のタプル.
        """
        if isinstance(batch, int):
            batch = ov.Dimension(batch)
        model = self.core.read_model(str(model_path))

        image_name = None
        shapes = {}
        for port in model.inputs:
            dims = list(port.get_partial_shape())
            if len(dims) == 4:
                image_name = port.get_any_name()
                shapes[image_name] = ov.PartialShape([batch] + dims[1:])
        if image_name is None:
            raise LoadError("4次元の画像入力を持たないネットワークです")
        model.reshape(shapes)

        ppp = PrePostProcessor(model)
        inputs: List[TensorInfo] = []
        for port in model.inputs:
            name = port.get_any_name()
            if name == image_name:
                ppp.input(name).tensor().set_element_type(ov.Type.u8).set_layout(
                    ov.Layout("NCHW")
                )
                ppp.input(name).model().set_layout(ov.Layout("NCHW"))
                dtype = np.dtype(np.uint8)
            else:
                ppp.input(name).tensor().set_element_type(ov.Type.f32)
                dtype = np.dtype(np.float32)
            inputs.append(TensorInfo(name=name, shape=_partial_dims(port), dtype=dtype))
        for port in model.outputs:
            ppp.output(port.get_any_name()).tensor().set_element_type(ov.Type.f32)

        return ppp.build(), inputs

    def compile(
        self, model_path: Path, device: str, max_batch_size: int
    ) -> OpenVinoCompiledNetwork:
        """動的バッチでのコンパイルを試み, 非対応ならバッチサイズ1へ縮退する.

        Args:
            model_path: モデルファイルパス.
            device: OpenVINOのデバイス名.
            max_batch_size: 要求する最大バッチサイズ.

        Returns:
            ロード済みネットワーク.

        Raises:
            LoadError: バッチサイズ1でもコンパイルできない場合.
        """
        device = device.upper()
        if max_batch_size == 1:
            model, inputs = self._read_model(model_path, 1)
            return self._compile_static(model, inputs, device, BatchMode.STATIC)

        model, inputs = self._read_model(model_path, ov.Dimension(1, max_batch_size))
        try:
            compiled = self.core.compile_model(model, device)
        except RuntimeError as e:
            logger.warning(
                f"{device}は動的バッチに対応していません. バッチサイズ1で再ロードします: {e}"
            )
            model, inputs = self._read_model(model_path, 1)
            return self._compile_static(
                model, inputs, device, BatchMode.SINGLE_FALLBACK
            )

        inputs = [
            TensorInfo(
                name=info.name,
                shape=(max_batch_size,) + info.shape[1:] if info.rank == 4 else info.shape,
                dtype=info.dtype,
            )
            for info in inputs
        ]
        return OpenVinoCompiledNetwork(
            compiled, inputs, max_batch_size, BatchMode.DYNAMIC
        )

    def _compile_static(
        self,
        model: Any,
        inputs: List[TensorInfo],
        device: str,
        batch_mode: BatchMode,
    ) -> OpenVinoCompiledNetwork:
        """バッチサイズ1の固定形状でコンパイルする."""
        try:
            compiled = self.core.compile_model(model, device)
        except RuntimeError as e:
            raise LoadError(f"モデルを{device}へロードできません: {e}") from e
        return OpenVinoCompiledNetwork(compiled, inputs, 1, batch_mode)
