"""cnnbatch.config.demo_config: デモ共通設定の Pydantic モデル."""

from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .sub_configs import EmbeddingConfig, HeadPoseConfig, MaskRcnnConfig


class DemoConfig(BaseModel):
    """推論デモの型付き設定."""

    # Required
    model_path: str

    inputs: List[str] = Field(default_factory=list)
    device: str = "CPU"
    backend: Literal["onnxruntime", "openvino"] = "onnxruntime"
    max_batch_size: int = Field(default=1, gt=0)
    swap_rb: bool = True
    output_dir: str = "."
    mask_rcnn: MaskRcnnConfig = Field(default_factory=MaskRcnnConfig)
    head_pose: HeadPoseConfig = Field(default_factory=HeadPoseConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)

    @field_validator("model_path", "device", "output_dir", mode="before")
    @classmethod
    def must_not_be_empty(cls, v: Any) -> Any:
        """文字列が空でないことを検証する."""
        if isinstance(v, str) and v.strip() == "":
            raise ValueError("空文字は許可しません")
        return v

    @model_validator(mode="after")
    def validate_mask_rcnn(self) -> "DemoConfig":
        """しきい値とα値の範囲を検証する."""
        mask_config = self.mask_rcnn
        for name in ("probability_threshold", "mask_threshold", "alpha"):
            value = getattr(mask_config, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"mask_rcnn.{name} は数値で指定してください (値: {value!r})")
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"mask_rcnn.{name} は0以上1以下である必要があります (値: {value})")
        return self

    @model_validator(mode="after")
    def validate_embedding(self) -> "DemoConfig":
        """output_shape が正の2要素であることを検証する."""
        shape = self.embedding.output_shape
        if shape is None:
            return self
        if len(shape) != 2 or any(int(v) <= 0 for v in shape):
            raise ValueError(f"embedding.output_shape は正の整数2つで指定してください: {shape}")
        return self

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "DemoConfig":
        """Dict から DemoConfig を生成. Pydantic バリデーションが自動実行される."""
        payload = dict(config)

        payload["mask_rcnn"] = MaskRcnnConfig.from_dict(payload.get("mask_rcnn"))
        payload["head_pose"] = HeadPoseConfig.from_dict(payload.get("head_pose"))
        payload["embedding"] = EmbeddingConfig.from_dict(payload.get("embedding"))

        result: DemoConfig = cls.model_validate(payload)
        return result
