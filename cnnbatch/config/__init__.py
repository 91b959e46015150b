"""cnnbatch.config: 型付き設定."""

from .demo_config import DemoConfig
from .sub_configs import EmbeddingConfig, HeadPoseConfig, MaskRcnnConfig

__all__ = ["DemoConfig", "EmbeddingConfig", "HeadPoseConfig", "MaskRcnnConfig"]
