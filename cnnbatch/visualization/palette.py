"""クラス別オーバーレイ色のパレット."""

from typing import Dict, List, Sequence, Tuple

Color = Tuple[int, int, int]

# Cityscapes のラベル色 (RGB)
CITYSCAPES_COLORS: Tuple[Color, ...] = (
    (128, 64, 128),
    (244, 35, 232),
    (70, 70, 70),
    (102, 102, 156),
    (190, 153, 153),
    (153, 153, 153),
    (250, 170, 30),
    (220, 220, 0),
    (107, 142, 35),
    (152, 251, 152),
    (70, 130, 180),
    (220, 20, 60),
    (255, 0, 0),
    (0, 0, 142),
    (0, 0, 70),
    (0, 60, 100),
    (0, 80, 100),
    (0, 0, 230),
    (119, 11, 32),
    (111, 74, 0),
    (81, 0, 81),
)


class ClassColorMap:
    """クラスIDからパレット番号への対応を初出順で割り当てる.

    パレットの色数を超えたクラスは先頭の色から再利用する.
    """

    def __init__(self, palette: Sequence[Color] = CITYSCAPES_COLORS) -> None:
        """パレットを指定して初期化.

        Args:
            palette: RGB色の列.
        """
        if not palette:
            raise ValueError("パレットが空です")
        self._palette = tuple(palette)
        self._indices: Dict[int, int] = {}
        self._order: List[int] = []

    def __len__(self) -> int:
        return len(self._order)

    @property
    def class_ids(self) -> List[int]:
        """割り当て済みクラスIDを初出順で返す."""
        return list(self._order)

    def index_of(self, class_id: int) -> int:
        """クラスIDの割り当て番号を返す. 初出なら次の番号を割り当てる."""
        if class_id not in self._indices:
            self._indices[class_id] = len(self._order)
            self._order.append(class_id)
        return self._indices[class_id]

    def color_of(self, class_id: int) -> Color:
        """クラスIDに対応するRGB色を返す."""
        return self._palette[self.index_of(class_id) % len(self._palette)]
