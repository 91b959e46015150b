"""cnnbatch.config.sub_configs: デモ別のネスト設定用 dataclass 定義."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass
class MaskRcnnConfig:
    """検出+マスクデモの設定."""

    detection_output_name: str = "reshape_do_2d"
    masks_name: str = "masks"
    probability_threshold: float = 0.2
    mask_threshold: float = 0.5
    alpha: float = 0.7

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MaskRcnnConfig":
        """Dict から設定を作成."""
        payload = data or {}
        return cls(
            detection_output_name=payload.get("detection_output_name", "reshape_do_2d"),
            masks_name=payload.get("masks_name", "masks"),
            probability_threshold=payload.get("probability_threshold", 0.2),
            mask_threshold=payload.get("mask_threshold", 0.5),
            alpha=payload.get("alpha", 0.7),
        )


@dataclass
class HeadPoseConfig:
    """頭部姿勢デモの設定. face_box 未指定時は画像全体を顔領域とする."""

    face_box: Optional[Tuple[int, int, int, int]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "HeadPoseConfig":
        """Dict から設定を作成."""
        payload = data or {}
        face_box = payload.get("face_box")
        return cls(face_box=tuple(face_box) if face_box is not None else None)


@dataclass
class EmbeddingConfig:
    """埋め込みベクトルデモの設定."""

    output_shape: Optional[Tuple[int, int]] = None
    output_file: str = "embeddings.npy"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EmbeddingConfig":
        """Dict から設定を作成."""
        payload = data or {}
        output_shape = payload.get("output_shape")
        return cls(
            output_shape=tuple(output_shape) if output_shape is not None else None,
            output_file=payload.get("output_file", "embeddings.npy"),
        )
