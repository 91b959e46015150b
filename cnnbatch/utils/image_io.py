"""画像の読み書きとリサイズ.

画像は全て (H, W, C) の uint8 RGB 配列として扱う.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from cnnbatch.logging import LoggerManager

logger: logging.Logger = LoggerManager().get_logger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff")


def read_image(path: Union[str, Path]) -> Optional[np.ndarray]:
    """画像ファイルをRGB配列として読み込む.

    Args:
        path: 画像ファイルパス

    Returns:
        (H, W, 3) uint8 配列. 読み込めない場合はNone
    """
    try:
        with Image.open(path) as img:
            return np.asarray(img.convert("RGB")).copy()
    except (OSError, UnidentifiedImageError) as e:
        logger.warning(f"画像 {path} を読み込めません: {e}")
        return None


def write_image(image: np.ndarray, path: Union[str, Path]) -> Path:
    """RGB配列を画像ファイルとして保存する.

    Args:
        image: (H, W, 3) uint8 配列
        path: 保存先パス

    Returns:
        保存したパス
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(image).save(path)
    return path


def resize_image(image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """画像をバイリニア補間でリサイズする.

    Args:
        image: (H, W, C) または (H, W) uint8 配列
        size: 出力サイズ (width, height)

    Returns:
        リサイズ後の配列
    """
    if image.ndim == 3 and image.shape[2] == 1:
        resized = resize_image(image[:, :, 0], size)
        return resized[:, :, np.newaxis]
    resized_img = Image.fromarray(image).resize(size, Image.Resampling.BILINEAR)
    return np.asarray(resized_img).copy()


def resize_plane(plane: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """float32の2次元マップをバイリニア補間でリサイズする.

    Args:
        plane: (H, W) float 配列
        size: 出力サイズ (width, height)

    Returns:
        リサイズ後の (height, width) float32 配列
    """
    img = Image.fromarray(np.ascontiguousarray(plane, dtype=np.float32))
    return np.asarray(img.resize(size, Image.Resampling.BILINEAR), dtype=np.float32)


def collect_image_paths(inputs: Sequence[Union[str, Path]]) -> List[Path]:
    """ファイルまたはディレクトリの指定から画像ファイルパスを列挙する.

    ディレクトリは直下の画像ファイルを名前順で展開する.

    Args:
        inputs: ファイルまたはディレクトリのパス列

    Returns:
        画像ファイルパスのリスト
    """
    paths: List[Path] = []
    for item in inputs:
        item_path = Path(item)
        if item_path.is_dir():
            paths.extend(
                sorted(
                    p
                    for p in item_path.iterdir()
                    if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
                )
            )
        else:
            paths.append(item_path)
    return paths


def read_images(paths: Sequence[Path]) -> Tuple[List[np.ndarray], List[Path]]:
    """画像を順に読み込む. 読み込めない画像は警告を出して読み飛ばす.

    Args:
        paths: 画像ファイルパス列

    Returns:
        (画像リスト, 読み込めた画像のパスリスト) のタプル
    """
    images: List[np.ndarray] = []
    loaded: List[Path] = []
    for path in paths:
        image = read_image(path)
        if image is None:
            continue
        images.append(image)
        loaded.append(path)
    return images, loaded
