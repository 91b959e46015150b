"""画像入出力ユーティリティのテスト."""

import numpy as np
from PIL import Image

from cnnbatch.utils import (
    collect_image_paths,
    read_image,
    read_images,
    resize_image,
    resize_plane,
    write_image,
)


class TestReadWriteImage:
    """read_image / write_image のテスト"""

    def test_round_trip_png(self, tmp_path):
        """PNGで保存した画像を同じ値で読み込める"""
        image = np.zeros((3, 5, 3), dtype=np.uint8)
        image[..., 0] = 200

        path = write_image(image, tmp_path / "nested" / "out0.png")

        assert path.exists()
        np.testing.assert_array_equal(read_image(path), image)

    def test_grayscale_is_converted_to_rgb(self, tmp_path):
        """グレースケール画像はRGB 3チャンネルで読み込まれる"""
        Image.new("L", (4, 2), color=9).save(tmp_path / "gray.png")

        image = read_image(tmp_path / "gray.png")

        assert image.shape == (2, 4, 3)
        assert (image == 9).all()

    def test_unreadable_file_returns_none(self, tmp_path):
        """画像として読めないファイルはNone"""
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")

        assert read_image(path) is None


class TestResize:
    """resize_image / resize_plane のテスト"""

    def test_resize_image(self):
        """(width, height)指定でリサイズされる"""
        image = np.full((4, 6, 3), 50, dtype=np.uint8)

        resized = resize_image(image, (3, 2))

        assert resized.shape == (2, 3, 3)
        assert (resized == 50).all()

    def test_resize_single_channel(self):
        """1チャンネル画像はチャンネル軸を保つ"""
        image = np.full((4, 4, 1), 7, dtype=np.uint8)

        assert resize_image(image, (2, 2)).shape == (2, 2, 1)

    def test_resize_plane_keeps_float_values(self):
        """floatマップは値域を保ったままリサイズされる"""
        plane = np.full((28, 28), 0.75, dtype=np.float32)

        resized = resize_plane(plane, (120, 60))

        assert resized.shape == (60, 120)
        assert resized.dtype == np.float32
        np.testing.assert_allclose(resized, 0.75, rtol=1e-5)


class TestCollectImages:
    """collect_image_paths / read_images のテスト"""

    def test_directory_is_expanded_in_name_order(self, create_image_dir, tmp_path):
        """ディレクトリは画像ファイルのみ名前順で展開される"""
        image_dir = create_image_dir(3)
        (image_dir / "notes.txt").write_text("skip")
        single = tmp_path / "single.png"
        Image.new("RGB", (4, 4)).save(single)

        paths = collect_image_paths([image_dir, single])

        assert [p.name for p in paths] == [
            "image_0.png",
            "image_1.png",
            "image_2.png",
            "single.png",
        ]

    def test_read_images_skips_unreadable(self, create_image_dir):
        """読めない画像は読み飛ばされる"""
        image_dir = create_image_dir(2)
        broken = image_dir / "broken.png"
        broken.write_bytes(b"xx")

        images, loaded = read_images(collect_image_paths([image_dir]))

        assert len(images) == 2
        assert broken not in loaded
