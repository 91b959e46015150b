"""テスト共通フィクスチャ."""

from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
import pytest
from PIL import Image

from cnnbatch.engine import BatchMode, TensorInfo
from cnnbatch.inference import ModelHandle, load_model

Responder = Callable[[Dict[str, np.ndarray]], Dict[str, np.ndarray]]


class StubNetwork:
    """ICompiledNetwork を満たす最小スタブ.

    既定では画像入力を (N, C*H*W) に平坦化した float32 を "output" として返す.
    """

    def __init__(
        self,
        *,
        batch_size: int = 2,
        batch_mode: BatchMode = BatchMode.DYNAMIC,
        channels: int = 3,
        height: int = 4,
        width: int = 4,
        outputs: Optional[Sequence[TensorInfo]] = None,
        extra_inputs: Sequence[TensorInfo] = (),
        responder: Optional[Responder] = None,
    ) -> None:
        self._batch_size = batch_size
        self._batch_mode = batch_mode
        self._inputs = [
            TensorInfo(
                name="data",
                shape=(batch_size, channels, height, width),
                dtype=np.dtype(np.uint8),
            ),
            *extra_inputs,
        ]
        self._outputs = list(
            outputs
            or [
                TensorInfo(
                    name="output",
                    shape=(None, channels * height * width),
                    dtype=np.dtype(np.float32),
                )
            ]
        )
        self._responder = responder or self._flatten
        self.calls: List[Dict[str, np.ndarray]] = []

    @staticmethod
    def _flatten(feeds: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        data = feeds["data"]
        return {"output": data.reshape(data.shape[0], -1).astype(np.float32)}

    @property
    def inputs(self) -> List[TensorInfo]:
        return self._inputs

    @property
    def outputs(self) -> List[TensorInfo]:
        return self._outputs

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def batch_mode(self) -> BatchMode:
        return self._batch_mode

    def infer(self, feeds: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        self.calls.append({name: value.copy() for name, value in feeds.items()})
        return self._responder(feeds)


class StubBackend:
    """IInferenceBackend を満たす最小スタブ."""

    name = "stub"

    def __init__(self, network: StubNetwork) -> None:
        self.network = network
        self.compile_args: Optional[tuple] = None

    def compile(self, model_path: Path, device: str, max_batch_size: int) -> StubNetwork:
        self.compile_args = (model_path, device, max_batch_size)
        return self.network


@pytest.fixture
def stub_network_cls() -> type:
    """StubNetwork クラスを返す."""
    return StubNetwork


@pytest.fixture
def stub_backend_cls() -> type:
    """StubBackend クラスを返す."""
    return StubBackend


@pytest.fixture
def model_file(tmp_path: Path) -> Path:
    """load_model の存在チェックを通すためのダミーモデルファイル."""
    path = tmp_path / "model.onnx"
    path.write_bytes(b"stub")
    return path


@pytest.fixture
def load_stub_handle(model_file: Path) -> Callable[..., ModelHandle]:
    """スタブネットワークから ModelHandle を作るファクトリフィクスチャ.

    Example:
        >>> def test_example(load_stub_handle, stub_network_cls):
        ...     handle = load_stub_handle(stub_network_cls(batch_size=4))
    """

    def _load(network: StubNetwork, **kwargs) -> ModelHandle:
        kwargs.setdefault("max_batch_size", network.batch_size)
        return load_model(model_file, backend=StubBackend(network), **kwargs)

    return _load


@pytest.fixture
def create_image_dir(tmp_path: Path) -> Callable[..., Path]:
    """単色のダミー画像を並べたディレクトリを作成するファクトリフィクスチャ.

    Args:
        tmp_path: pytest組み込みの一時ディレクトリ.

    Returns:
        作成関数. 引数:
            num_images: 画像枚数
            image_size: 画像サイズ (width, height)
            subdir: サブディレクトリ名
    """

    def _create(
        num_images: int = 3,
        *,
        image_size: tuple[int, int] = (4, 4),
        subdir: str = "images",
    ) -> Path:
        base = tmp_path / subdir
        base.mkdir(parents=True, exist_ok=True)
        for i in range(num_images):
            img = Image.new("RGB", image_size, color=(i * 50 % 255, 100, 150))
            img.save(base / f"image_{i}.png")
        return base

    return _create
