"""画像列を入力テンソルへ詰め, チャンク単位で推論を行うアダプタ."""

import logging
import time
from typing import Callable, Sequence

import numpy as np

from cnnbatch.logging import LoggerManager
from cnnbatch.utils.image_io import resize_image

from .model_handle import BlobMap, ModelHandle

logger: logging.Logger = LoggerManager().get_logger(__name__)

FetchResults = Callable[[BlobMap, int], None]
"""出力ブロブ群とチャンクの有効件数を受け取るコールバック."""


def image_to_blob(
    image: np.ndarray, blob: np.ndarray, slot: int, swap_rb: bool = True
) -> None:
    """画像を入力テンソルの指定スロットへ書き込む.

    (H, W, C) のインターリーブ配置を (C, H, W) のプレーナ配置へ変換する.
    ネットワークの入力サイズと異なる場合はリサイズする.

    Args:
        image: (H, W, C) または (H, W) uint8 RGB 画像.
        blob: (N, C, H, W) uint8 入力テンソル.
        slot: 書き込み先のバッチ内インデックス.
        swap_rb: RGBをBGRへ並べ替えるか.

    Raises:
        ValueError: チャンネル数が一致しない場合.
    """
    _, channels, height, width = blob.shape
    if image.ndim == 2:
        image = image[:, :, np.newaxis]
    if image.shape[:2] != (height, width):
        image = resize_image(image, (width, height))
    if swap_rb and image.shape[2] == 3:
        image = image[:, :, ::-1]
    if image.shape[2] != channels:
        raise ValueError(
            f"画像のチャンネル数({image.shape[2]})がネットワーク入力({channels})と一致しません"
        )
    blob[slot] = image.transpose(2, 0, 1)


def blob_to_image(blob: np.ndarray, slot: int, swap_rb: bool = True) -> np.ndarray:
    """入力テンソルの指定スロットを (H, W, C) 画像へ戻す.

    Args:
        blob: (N, C, H, W) 入力テンソル.
        slot: 読み出すバッチ内インデックス.
        swap_rb: 書き込み時にRGB/BGRを入れ替えたか.

    Returns:
        (H, W, C) 画像のコピー.
    """
    image = blob[slot].transpose(1, 2, 0)
    if swap_rb and image.shape[2] == 3:
        image = image[:, :, ::-1]
    return np.ascontiguousarray(image)


class BatchAdapter:
    """ModelHandleの推論リクエストを使ってバッチ推論を行う.

    Attributes:
        handle: ロード済みのModelHandle
        swap_rb: 入力時にRGBをBGRへ並べ替えるか
    """

    def __init__(self, handle: ModelHandle, swap_rb: bool = True) -> None:
        """アダプタを初期化.

        Args:
            handle: ロード済みのModelHandle.
            swap_rb: 入力時にRGBをBGRへ並べ替えるか.
        """
        self.handle = handle
        self.swap_rb = swap_rb

    @property
    def batch_size(self) -> int:
        """1回の推論で処理する最大件数."""
        return self.handle.request.batch_size

    def infer_batch(self, images: Sequence[np.ndarray], fetch_results: FetchResults) -> None:
        """画像列をバッチサイズごとのチャンクに分けて推論する.

        チャンクがバッチサイズに満たない場合, 動的バッチなら有効バッチサイズを
        その推論に限り縮め, 固定バッチなら残りスロットをゼロで埋める.
        コールバックにはチャンクの有効件数だけが渡される.

        Args:
            images: 同一形状の (H, W, C) 画像列.
            fetch_results: チャンクごとに1回呼ばれるコールバック.
        """
        request = self.handle.request
        batch_size = request.batch_size
        blob = request.input_blob

        for batch_start in range(0, len(images), batch_size):
            chunk = images[batch_start : batch_start + batch_size]
            current_batch_size = len(chunk)
            for slot, image in enumerate(chunk):
                image_to_blob(image, blob, slot, swap_rb=self.swap_rb)

            if current_batch_size < batch_size:
                if self.handle.dynamic_batch:
                    request.set_batch(current_batch_size)
                else:
                    blob[current_batch_size:] = 0

            start_time = time.perf_counter()
            request.infer()
            logger.debug(
                f"推論 {batch_start}..{batch_start + current_batch_size - 1}: "
                f"{(time.perf_counter() - start_time) * 1000:.1f} ms"
            )

            with request.map_outputs(self.handle.output_names) as blobs:
                fetch_results(blobs, current_batch_size)

    def infer(self, image: np.ndarray, fetch_results: FetchResults) -> None:
        """画像1枚を推論する."""
        self.infer_batch([image], fetch_results)
