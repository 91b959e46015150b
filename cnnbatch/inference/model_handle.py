"""ロード済みネットワークと推論リクエストコンテキスト.

入出力テンソルバッファは推論リクエストが専有する.
呼び出し側は ``map_outputs`` のスコープ内でのみ読み取り専用ビューを使える.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple, Union

import numpy as np

from cnnbatch.engine import BatchMode, ICompiledNetwork, IInferenceBackend, create_backend
from cnnbatch.engine.interfaces import TensorInfo
from cnnbatch.errors import LoadError, LogicError, OutputBlobError
from cnnbatch.logging import LoggerManager

logger: logging.Logger = LoggerManager().get_logger(__name__)


class BlobMap(Mapping[str, np.ndarray]):
    """出力名から読み取り専用ビューへの対応表.

    コールバックの終了時に ``release`` され, 以降のアクセスは RuntimeError になる.
    保持したい値はコールバック内でコピーすること.
    """

    def __init__(self, views: Dict[str, np.ndarray]) -> None:
        """ビューを受け取り初期化する."""
        self._views = views
        self._released = False

    def __getitem__(self, name: str) -> np.ndarray:
        if self._released:
            raise RuntimeError(f"解放済みの出力ブロブにアクセスしました: {name}")
        return self._views[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._views)

    def __len__(self) -> int:
        return len(self._views)

    @property
    def released(self) -> bool:
        """解放済みかどうか."""
        return self._released

    def release(self) -> None:
        """全てのビューを手放す."""
        self._views = {name: np.empty(0, dtype=np.float32) for name in self._views}
        self._released = True


class InferRequest:
    """1つのネットワークに束縛された推論リクエストコンテキスト.

    再入不可. 同じリクエストへの並行呼び出しは想定しない.
    """

    def __init__(
        self,
        network: ICompiledNetwork,
        image_input: TensorInfo,
        info_inputs: Sequence[TensorInfo],
    ) -> None:
        """入力バッファを確保する.

        Args:
            network: ロード済みネットワーク.
            image_input: 画像入力のテンソル情報 (形状は確定済み).
            info_inputs: 画像情報入力 (2次元) のテンソル情報.
        """
        self.network = network
        self.image_input_name = image_input.name
        batch, channels, height, width = (int(d) for d in image_input.shape)  # type: ignore[arg-type]
        self._input_buffer = np.zeros((batch, channels, height, width), dtype=np.uint8)
        self._info_buffers: Dict[str, np.ndarray] = {}
        for info in info_inputs:
            rows = info.shape[0] if info.shape[0] is not None else batch
            cols = info.shape[1] if info.shape[1] is not None else 3
            buffer = np.ones((rows, cols), dtype=np.float32)
            buffer[:, 0] = height
            buffer[:, 1] = width
            self._info_buffers[info.name] = buffer
        self._active_batch = batch
        self._outputs: Dict[str, np.ndarray] = {}

    @property
    def batch_size(self) -> int:
        """入力バッファのバッチサイズ."""
        return int(self._input_buffer.shape[0])

    @property
    def active_batch(self) -> int:
        """次の推論で使う有効バッチサイズ."""
        return self._active_batch

    @property
    def input_blob(self) -> np.ndarray:
        """書き込み可能な画像入力バッファ (N, C, H, W) uint8."""
        return self._input_buffer

    def set_batch(self, batch: int) -> None:
        """次の推論1回分の有効バッチサイズを設定する. バッファは再確保しない.

        Args:
            batch: 有効バッチサイズ.

        Raises:
            LogicError: 動的バッチ無効時, または範囲外の場合.
        """
        if self.network.batch_mode is not BatchMode.DYNAMIC:
            raise LogicError("動的バッチが無効なネットワークでは set_batch を使えません")
        if not 1 <= batch <= self.batch_size:
            raise LogicError(
                f"有効バッチサイズ {batch} は 1..{self.batch_size} の範囲外です"
            )
        self._active_batch = batch

    def infer(self) -> None:
        """同期推論を1回実行し, 出力をリクエスト所有のバッファへ取り込む."""
        active = self._active_batch
        feeds: Dict[str, np.ndarray] = {
            self.image_input_name: self._input_buffer[:active]
        }
        for name, buffer in self._info_buffers.items():
            if buffer.shape[0] == self.batch_size:
                buffer = buffer[:active]
            feeds[name] = buffer

        results = self.network.infer(feeds)
        self._outputs = {
            name: np.array(value, dtype=np.float32) for name, value in results.items()
        }
        self._active_batch = self.batch_size

    def get_blob(self, name: str) -> np.ndarray:
        """出力ブロブの読み取り専用ビューを返す.

        Raises:
            OutputBlobError: 出力が存在しない場合.
        """
        blob = self._outputs.get(name)
        if blob is None:
            raise OutputBlobError(f"出力ブロブ '{name}' が存在しません")
        view = blob.view()
        view.setflags(write=False)
        return view

    @contextmanager
    def map_outputs(self, names: Sequence[str]) -> Iterator[BlobMap]:
        """指定出力の読み取り専用ビューをスコープ付きで貸し出す.

        Args:
            names: 出力名の列.

        Yields:
            スコープ終了時に解放されるBlobMap.
        """
        blobs = BlobMap({name: self.get_blob(name) for name in names})
        try:
            yield blobs
        finally:
            blobs.release()


class ModelHandle:
    """デバイスへロード済みのネットワークと専用の推論リクエスト.

    Attributes:
        model_path: モデルファイルパス
        device: デバイス名
        backend_name: バックエンド名
        request: 推論リクエストコンテキスト
    """

    def __init__(
        self,
        network: ICompiledNetwork,
        model_path: Path,
        device: str,
        backend_name: str,
        allow_image_info: bool = False,
    ) -> None:
        """入力構成を検証し, 推論リクエストを作成する.

        Args:
            network: ロード済みネットワーク.
            model_path: モデルファイルパス.
            device: デバイス名.
            backend_name: バックエンド名.
            allow_image_info: 2次元の画像情報入力を許可するか.

        Raises:
            LoadError: 入力構成が非対応の場合.
        """
        self.network = network
        self.model_path = model_path
        self.device = device
        self.backend_name = backend_name

        inputs = list(network.inputs)
        if len(inputs) != 1 and not allow_image_info:
            raise LoadError("ネットワークの入力は1つである必要があります")

        image_inputs: List[TensorInfo] = []
        info_inputs: List[TensorInfo] = []
        for info in inputs:
            if info.rank == 4:
                image_inputs.append(info)
            elif info.rank == 2:
                info_inputs.append(info)
            else:
                raise LoadError(f"未対応の入力形状です: {info.name} (次元数 = {info.rank})")
        if len(image_inputs) != 1:
            raise LoadError(
                f"画像入力(4次元)はちょうど1つ必要です (検出数: {len(image_inputs)})"
            )

        image_input = image_inputs[0]
        if any(dim is None for dim in image_input.shape):
            raise LoadError(f"画像入力の形状が確定していません: {image_input.shape}")

        self.image_info_names = [info.name for info in info_inputs]
        self.request = InferRequest(network, image_input, info_inputs)

    @property
    def input_name(self) -> str:
        """画像入力の名前."""
        return self.request.image_input_name

    @property
    def input_shape(self) -> Tuple[int, int, int]:
        """ネットワークが期待する (C, H, W)."""
        _, channels, height, width = self.request.input_blob.shape
        return int(channels), int(height), int(width)

    @property
    def output_names(self) -> List[str]:
        """出力名の一覧."""
        return [info.name for info in self.network.outputs]

    @property
    def batch_size(self) -> int:
        """交渉後のバッチサイズ."""
        return self.network.batch_size

    @property
    def batch_mode(self) -> BatchMode:
        """交渉結果."""
        return self.network.batch_mode

    @property
    def dynamic_batch(self) -> bool:
        """動的バッチが有効か."""
        return self.network.batch_mode is BatchMode.DYNAMIC

    def log_info(self) -> None:
        """ロードしたネットワークの情報をログ出力する."""
        logger.info(f"モデル: {self.model_path}")
        logger.info(f"\tデバイス: {self.device} ({self.backend_name})")
        logger.info(f"\t入力: {self.input_name} {self.input_shape}")
        logger.info(f"\t出力: {', '.join(self.output_names)}")
        logger.info(f"\tバッチサイズ: {self.batch_size} ({self.batch_mode.value})")


def load_model(
    model_path: Union[str, Path],
    device: str = "CPU",
    max_batch_size: int = 1,
    backend: Union[str, IInferenceBackend] = "onnxruntime",
    allow_image_info: bool = False,
) -> ModelHandle:
    """モデルを読み込み, 推論可能なModelHandleを返す.

    動的バッチに対応しない場合はバッチサイズ1へ縮退する.
    縮退は致命的エラーではなく ``ModelHandle.batch_mode`` に
    ``BatchMode.SINGLE_FALLBACK`` として表れる.

    Args:
        model_path: モデルファイルパス.
        device: デバイス名.
        max_batch_size: 要求する最大バッチサイズ.
        backend: バックエンド名またはバックエンドインスタンス.
        allow_image_info: 2次元の画像情報入力を許可するか.

    Returns:
        ロード済みのModelHandle.

    Raises:
        LoadError: モデルが存在しない, または非互換な場合.
        ValueError: max_batch_sizeが1未満の場合.
    """
    if max_batch_size < 1:
        raise ValueError(f"max_batch_size は1以上である必要があります: {max_batch_size}")

    model_path = Path(model_path)
    if not model_path.exists():
        raise LoadError(f"モデルファイルが見つかりません: {model_path}")

    engine = create_backend(backend) if isinstance(backend, str) else backend
    network = engine.compile(model_path, device, max_batch_size)
    if network.batch_mode is BatchMode.SINGLE_FALLBACK and max_batch_size > 1:
        logger.warning(
            f"動的バッチが利用できないため, バッチサイズを {max_batch_size} から 1 に変更しました"
        )

    handle = ModelHandle(
        network,
        model_path=model_path,
        device=device,
        backend_name=engine.name,
        allow_image_info=allow_image_info,
    )
    handle.log_info()
    return handle
