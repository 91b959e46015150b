"""cnnbatch CLI のテスト."""

import numpy as np
import pytest
from PIL import Image

from cnnbatch.cli import main as cli
from cnnbatch.engine import BatchMode, TensorInfo
from cnnbatch.errors import ConfigurationError


@pytest.fixture
def patch_load_model(monkeypatch, stub_backend_cls):
    """CLIが使うload_modelをスタブバックエンド経由に差し替える."""
    real_load_model = cli.load_model

    def _patch(network):
        def fake_load_model(model_path, device="CPU", max_batch_size=1, backend=None, **kwargs):
            return real_load_model(
                model_path,
                device=device,
                max_batch_size=max_batch_size,
                backend=stub_backend_cls(network),
                **kwargs,
            )

        monkeypatch.setattr(cli, "load_model", fake_load_model)

    return _patch


class TestArgumentErrors:
    """引数・設定不備時の終了コードのテスト"""

    def test_no_command_prints_help(self, capsys):
        """サブコマンドなしはヘルプを表示して終了コード0"""
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])

        assert exc_info.value.code == 0
        assert "usage" in capsys.readouterr().out

    def test_missing_model_exits_zero(self, capsys):
        """-m 未指定は使い方を表示して終了コード0"""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["mask-rcnn", "-i", "image.png"])

        assert exc_info.value.code == 0
        assert "usage" in capsys.readouterr().out

    def test_missing_input_exits_zero(self):
        """-i 未指定も終了コード0"""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["embed", "-m", "model.onnx"])

        assert exc_info.value.code == 0

    def test_invalid_argument_exits_zero(self):
        """不正な引数値も終了コード0"""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["embed", "-m", "model.onnx", "-i", "a.png", "-b", "0"])

        assert exc_info.value.code == 0

    def test_missing_model_file_exits_one(self, create_image_dir, tmp_path):
        """存在しないモデルファイルは致命的エラーとして終了コード1"""
        image_dir = create_image_dir(1)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["embed", "-m", str(tmp_path / "missing.onnx"), "-i", str(image_dir)])

        assert exc_info.value.code == 1

    def test_no_readable_images_exits_one(self, model_file, tmp_path):
        """読み込める画像がない場合は終了コード1"""
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"xx")

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["embed", "-m", str(model_file), "-i", str(broken)])

        assert exc_info.value.code == 1

    @pytest.mark.parametrize(
        "config_text",
        [
            'mask_rcnn = {"probability_threshold": "high"}\n',
            'head_pose = {"face_box": 5}\n',
            'mask_rcnn = "oops"\n',
            "inputs = [\n",
            "max_batch_size = undefined_name\n",
        ],
    )
    def test_invalid_config_file_exits_zero(self, tmp_path, capsys, config_text):
        """不正な設定ファイルは使い方を表示して終了コード0"""
        config_file = tmp_path / "config.py"
        config_file.write_text(
            'model_path = "m.onnx"\ninputs = ["a.png"]\n' + config_text, encoding="utf-8"
        )

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["mask-rcnn", "-c", str(config_file)])

        assert exc_info.value.code == 0
        assert "usage" in capsys.readouterr().out


class TestResolveConfig:
    """resolve_config のテスト"""

    def test_cli_overrides_config_file(self, tmp_path):
        """CLI引数が設定ファイルの値より優先される"""
        config_file = tmp_path / "config.py"
        config_file.write_text(
            'model_path = "from_file.onnx"\n'
            'inputs = "images"\n'
            "max_batch_size = 2\n"
            'mask_rcnn = {"masks_name": "segm", "alpha": 0.5}\n',
            encoding="utf-8",
        )
        args = cli.build_parser().parse_args(
            [
                "mask-rcnn",
                "-c",
                str(config_file),
                "-b",
                "8",
                "--probability-threshold",
                "0.4",
            ]
        )

        config = cli.resolve_config(args)

        assert config.model_path == "from_file.onnx"
        assert config.inputs == ["images"]
        assert config.max_batch_size == 8
        assert config.mask_rcnn.masks_name == "segm"
        assert config.mask_rcnn.alpha == 0.5
        assert config.mask_rcnn.probability_threshold == 0.4

    def test_missing_config_file(self, tmp_path):
        """存在しない設定ファイルはConfigurationError"""
        args = cli.build_parser().parse_args(
            ["embed", "-c", str(tmp_path / "missing.py")]
        )

        with pytest.raises(ConfigurationError):
            cli.resolve_config(args)

    def test_no_swap_rb_flag(self):
        """--no-swap-rb でswap_rbが無効になる"""
        args = cli.build_parser().parse_args(
            [
                "head-pose",
                "-m",
                "m.onnx",
                "-i",
                "a.png",
                "--no-swap-rb",
                "--face-box",
                "1",
                "2",
                "3",
                "4",
            ]
        )

        config = cli.resolve_config(args)

        assert config.swap_rb is False
        assert config.head_pose.face_box == (1, 2, 3, 4)


class TestCommands:
    """サブコマンドの実行テスト"""

    def test_mask_rcnn_writes_annotated_images(
        self, patch_load_model, stub_network_cls, model_file, create_image_dir, tmp_path
    ):
        """mask-rcnn は入力ごとに out<index>.png を出力する"""

        def responder(feeds):
            rows = np.array([[0, 1, 0.9, 0.0, 0.0, 1.0, 1.0]], dtype=np.float32)
            return {
                "reshape_do_2d": rows,
                "masks": np.ones((1, 1, 28, 28), dtype=np.float32),
            }

        outputs = [
            TensorInfo(name="reshape_do_2d", shape=(None, 7), dtype=np.dtype(np.float32)),
            TensorInfo(name="masks", shape=(None, 1, 28, 28), dtype=np.dtype(np.float32)),
        ]
        patch_load_model(
            stub_network_cls(
                batch_size=1,
                batch_mode=BatchMode.STATIC,
                outputs=outputs,
                responder=responder,
            )
        )
        image_dir = create_image_dir(2)
        output_dir = tmp_path / "results"

        cli.main(
            ["mask-rcnn", "-m", str(model_file), "-i", str(image_dir), "-o", str(output_dir)]
        )

        assert sorted(p.name for p in output_dir.iterdir()) == ["out0.png", "out1.png"]
        annotated = np.asarray(Image.open(output_dir / "out0.png"))
        original = np.asarray(Image.open(image_dir / "image_0.png"))
        assert not np.array_equal(annotated, original)

    def test_embed_saves_vectors(
        self, patch_load_model, stub_network_cls, model_file, create_image_dir, tmp_path
    ):
        """embed は画像ごとのベクトルを .npy に保存する"""
        patch_load_model(stub_network_cls(batch_size=2))
        image_dir = create_image_dir(3)

        cli.main(
            [
                "embed",
                "-m",
                str(model_file),
                "-i",
                str(image_dir),
                "-b",
                "2",
                "-o",
                str(tmp_path / "out"),
                "--output-shape",
                "6",
                "8",
            ]
        )

        vectors = np.load(tmp_path / "out" / "embeddings.npy")
        assert vectors.shape == (3, 6, 8)

    def test_head_pose_runs(
        self, patch_load_model, stub_network_cls, model_file, create_image_dir
    ):
        """head-pose は単一出力の頭部姿勢モデルで実行できる"""

        def responder(feeds):
            batch = feeds["data"].shape[0]
            return {"angles": np.tile([[1.0, 2.0, 3.0]], (batch, 1)).astype(np.float32)}

        outputs = [TensorInfo(name="angles", shape=(None, 3), dtype=np.dtype(np.float32))]
        patch_load_model(stub_network_cls(batch_size=1, outputs=outputs, responder=responder))
        image_dir = create_image_dir(1)

        cli.main(["head-pose", "-m", str(model_file), "-i", str(image_dir)])
