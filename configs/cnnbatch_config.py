"""cnnbatch 設定ファイル.

CLI引数で指定した値はこのファイルの値より優先されます。
使用例: cnnbatch mask-rcnn --config configs/cnnbatch_config.py
"""

# モデル設定
model_path = "models/mask_rcnn.onnx"  # モデルファイルパス
device = "CPU"  # 推論デバイス（CPU / GPU）
backend = "onnxruntime"  # 推論バックエンド（onnxruntime / openvino）
max_batch_size = 1  # 最大バッチサイズ

# 入出力設定
inputs = ["data/images"]  # 画像ファイルまたはディレクトリ
output_dir = "results"  # 出力先ディレクトリ
swap_rb = True  # 入力画像をBGRへ並べ替える

# 検出+マスク設定
mask_rcnn = {
    "detection_output_name": "reshape_do_2d",  # 検出出力の名前
    "masks_name": "masks",  # マスク出力の名前
    "probability_threshold": 0.2,  # 検出確率のしきい値
    "mask_threshold": 0.5,  # マスク前景のしきい値
    "alpha": 0.7,  # マスクのαブレンド係数
}

# 頭部姿勢設定
head_pose = {
    "face_box": None,  # 顔領域 (x, y, w, h)。Noneなら画像全体
}

# 埋め込みベクトル設定
embedding = {
    "output_shape": None,  # 各ベクトルの整形形状 (h, w)
    "output_file": "embeddings.npy",  # 保存ファイル名
}
