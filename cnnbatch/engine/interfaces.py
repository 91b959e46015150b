"""推論エンジンのバックエンド抽象.

ICompiledNetwork / IInferenceBackend は `typing.Protocol` を採用する.
テストではスタブネットワークを継承なしで差し替えられる.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

import numpy as np


class BatchMode(Enum):
    """バッチ交渉の結果.

    DYNAMIC: 推論ごとに有効バッチサイズを縮められる.
    STATIC: 固定バッチ. 不足スロットはゼロ埋めされる.
    SINGLE_FALLBACK: 動的バッチ非対応のためバッチサイズ1へ縮退した.
    """

    DYNAMIC = "dynamic"
    STATIC = "static"
    SINGLE_FALLBACK = "single_fallback"


@dataclass(frozen=True)
class TensorInfo:
    """ネットワーク入出力テンソルの宣言情報.

    Args:
        name: テンソル名.
        shape: 宣言形状. 動的次元は None.
        dtype: エンジンが受け付ける/返すデータ型.
    """

    name: str
    shape: Tuple[Optional[int], ...]
    dtype: np.dtype

    @property
    def rank(self) -> int:
        """次元数を返す."""
        return len(self.shape)


class ICompiledNetwork(Protocol):
    """デバイスへロード済みのネットワーク."""

    @property
    def inputs(self) -> List[TensorInfo]:
        """入力テンソル情報 (バッチ次元は交渉後の値)."""
        ...

    @property
    def outputs(self) -> List[TensorInfo]:
        """出力テンソル情報."""
        ...

    @property
    def batch_size(self) -> int:
        """交渉後のバッチサイズ."""
        ...

    @property
    def batch_mode(self) -> BatchMode:
        """交渉結果."""
        ...

    def infer(self, feeds: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        """同期推論を1回実行する.

        Args:
            feeds: 入力名から配列への辞書.

        Returns:
            出力名から配列への辞書.
        """
        ...


class IInferenceBackend(Protocol):
    """推論ライブラリ差分を吸収するバックエンド."""

    name: str

    def compile(
        self, model_path: Path, device: str, max_batch_size: int
    ) -> ICompiledNetwork:
        """モデルを読み込み, バッチ交渉を行ってデバイスへロードする.

        Args:
            model_path: モデルファイルパス.
            device: デバイス名 (CPU, GPU など).
            max_batch_size: 要求する最大バッチサイズ.

        Returns:
            ロード済みネットワーク.

        Raises:
            LoadError: 読み込みまたはバッチ交渉に失敗した場合.
        """
        ...
