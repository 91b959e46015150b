"""ClassColorMap のテスト."""

import pytest

from cnnbatch.visualization import CITYSCAPES_COLORS, ClassColorMap


class TestClassColorMap:
    """ClassColorMap のテスト"""

    def test_palette_has_21_colors(self):
        """Cityscapesパレットは21色"""
        assert len(CITYSCAPES_COLORS) == 21

    def test_first_seen_order(self):
        """クラスIDには初出順にパレットの色が割り当てられる"""
        color_map = ClassColorMap()

        assert color_map.color_of(7) == CITYSCAPES_COLORS[0]
        assert color_map.color_of(3) == CITYSCAPES_COLORS[1]
        assert color_map.color_of(7) == CITYSCAPES_COLORS[0]
        assert color_map.class_ids == [7, 3]
        assert len(color_map) == 2

    def test_wraps_after_palette_size(self):
        """パレットの色数を超えたクラスは先頭の色から再利用する"""
        color_map = ClassColorMap()
        for class_id in range(21):
            color_map.color_of(class_id)

        assert color_map.index_of(100) == 21
        assert color_map.color_of(100) == CITYSCAPES_COLORS[0]

    def test_custom_palette(self):
        """任意のパレットを指定できる"""
        color_map = ClassColorMap([(1, 2, 3), (4, 5, 6)])

        assert [color_map.color_of(c) for c in (9, 8, 7)] == [
            (1, 2, 3),
            (4, 5, 6),
            (1, 2, 3),
        ]

    def test_empty_palette(self):
        """空のパレットはValueError"""
        with pytest.raises(ValueError):
            ClassColorMap([])
