"""マスク描画のテスト."""

import numpy as np

from cnnbatch.inference import Detection
from cnnbatch.visualization import MaskOverlayRenderer
from cnnbatch.visualization.overlay import BOX_OUTLINE_COLOR, blend_mask, draw_box


def make_detection(box=(2, 2, 8, 8), mask=None, class_id=1):
    """テスト用のDetectionを作る. マスクは既定で全面True."""
    width, height = int(box[2] - box[0]), int(box[3] - box[1])
    if mask is None:
        mask = np.ones((height, width), dtype=bool)
    return Detection(
        batch_index=0, class_id=class_id, probability=0.9, box=box, mask=mask
    )


class TestBlendMask:
    """blend_mask のテスト"""

    def test_blends_masked_pixels(self):
        """マスク画素はクラス色とαブレンドされる"""
        image = np.full((10, 10, 3), 100, dtype=np.uint8)

        blend_mask(image, make_detection(), (200, 0, 100), alpha=0.5)

        assert tuple(image[5, 5]) == (150, 50, 100)

    def test_pixels_outside_mask_unchanged(self):
        """マスク外とボックス外の画素は元の値のまま"""
        image = np.full((10, 10, 3), 100, dtype=np.uint8)
        mask = np.zeros((6, 6), dtype=bool)
        mask[:3] = True

        blend_mask(image, make_detection(mask=mask), (0, 0, 0), alpha=0.7)

        assert tuple(image[3, 3]) == (30, 30, 30)
        assert tuple(image[6, 6]) == (100, 100, 100)
        assert tuple(image[0, 0]) == (100, 100, 100)

    def test_detection_without_mask(self):
        """マスクのない検出では何もしない"""
        image = np.full((10, 10, 3), 100, dtype=np.uint8)
        detection = Detection(batch_index=0, class_id=1, probability=0.9, box=(0, 0, 5, 5))

        blend_mask(image, detection, (0, 0, 0))

        assert (image == 100).all()


class TestDrawBox:
    """draw_box のテスト"""

    def test_outline_is_one_pixel(self):
        """外枠は1画素幅で, 内部は描画されない"""
        image = np.zeros((10, 10, 3), dtype=np.uint8)
        color = (255, 255, 255)

        draw_box(image, make_detection(box=(2, 2, 8, 8)), color)

        assert tuple(image[2, 2]) == color
        assert tuple(image[7, 7]) == color
        assert tuple(image[2, 5]) == color
        assert tuple(image[5, 5]) == (0, 0, 0)
        assert tuple(image[8, 8]) == (0, 0, 0)

    def test_default_outline_color(self):
        """既定の枠色は (1, 0, 0)"""
        image = np.zeros((10, 10, 3), dtype=np.uint8)

        draw_box(image, make_detection())

        assert tuple(image[2, 2]) == BOX_OUTLINE_COLOR


class TestMaskOverlayRenderer:
    """MaskOverlayRenderer のテスト"""

    def test_render_returns_copy(self):
        """renderは元画像を変更せずに描画済みのコピーを返す"""
        image = np.zeros((10, 10, 3), dtype=np.uint8)
        renderer = MaskOverlayRenderer(alpha=1.0)

        output = renderer.render(image, [make_detection(class_id=4)])

        assert (image == 0).all()
        assert tuple(output[5, 5]) == (128, 64, 128)
        assert renderer.color_map.class_ids == [4]
