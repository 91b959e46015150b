"""1件ごとに固定長の特徴ベクトルを出力するネットワーク."""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from cnnbatch.errors import LoadError, OutputBlobError
from cnnbatch.inference.batch_adapter import BatchAdapter
from cnnbatch.inference.model_handle import BlobMap, ModelHandle
from cnnbatch.logging import LoggerManager

logger: logging.Logger = LoggerManager().get_logger(__name__)


def reshape_vector(vector: np.ndarray, output_shape: Tuple[int, int]) -> np.ndarray:
    """特徴ベクトルを (h, w) へ整形する.

    Raises:
        ValueError: h*w がベクトル長と一致しない場合.
    """
    height, width = output_shape
    if height * width != vector.size:
        raise ValueError(
            f"出力形状 {output_shape} は特徴次元 {vector.size} と一致しません"
        )
    return vector.reshape(height, width)


class VectorCNN:
    """埋め込みベクトルを計算するネットワークのラッパー.

    入力1つ, 出力1つのネットワークのみ扱う.
    """

    def __init__(self, handle: ModelHandle, swap_rb: bool = True) -> None:
        """ネットワーク構成を検証して初期化.

        Raises:
            LoadError: 入力または出力が1つでない場合.
        """
        if handle.image_info_names:
            raise LoadError("ネットワークの入力は1つである必要があります")
        if len(handle.output_names) != 1:
            raise LoadError("出力が1つのネットワークのみ対応しています")
        self.handle = handle
        self.adapter = BatchAdapter(handle, swap_rb=swap_rb)

    @property
    def feature_size(self) -> Optional[int]:
        """宣言された特徴次元. 動的な場合はNone."""
        dims = self.handle.network.outputs[0].shape[1:]
        if any(dim is None for dim in dims):
            return None
        return int(np.prod(dims))

    def compute_batch(
        self,
        images: Sequence[np.ndarray],
        output_shape: Optional[Tuple[int, int]] = None,
    ) -> List[np.ndarray]:
        """画像列の特徴ベクトルを計算する.

        ベクトルはテンソルバッファからコピーされるため, 推論後も有効.

        Args:
            images: (H, W, C) 画像列.
            output_shape: 指定した場合は各ベクトルを (h, w) へ整形する.

        Returns:
            float32の特徴ベクトル (または行列) のリスト.

        Raises:
            OutputBlobError: 出力の特徴次元が宣言と一致しない場合.
            ValueError: output_shape が特徴次元と一致しない場合.
        """
        if not images:
            return []

        vectors: List[np.ndarray] = []
        feature_size = self.feature_size

        def fetch_results(blobs: BlobMap, batch_size: int) -> None:
            for name in blobs:
                blob = blobs[name]
                flat = blob.reshape(blob.shape[0], -1)
                if feature_size is not None and flat.shape[1] != feature_size:
                    raise OutputBlobError(
                        f"出力 '{name}' の特徴次元 {flat.shape[1]} が宣言 {feature_size} と一致しません"
                    )
                for b in range(batch_size):
                    vector = flat[b]
                    if output_shape is not None:
                        vector = reshape_vector(vector, output_shape)
                    vectors.append(np.array(vector, dtype=np.float32))

        self.adapter.infer_batch(images, fetch_results)
        logger.debug(f"{len(vectors)}件の特徴ベクトルを計算しました")
        return vectors

    def compute(
        self, image: np.ndarray, output_shape: Optional[Tuple[int, int]] = None
    ) -> np.ndarray:
        """画像1枚の特徴ベクトルを計算する."""
        return self.compute_batch([image], output_shape)[0]
