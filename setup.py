"""
cnnbatch setup.py

cnnbatchパッケージのインストール設定
"""

from setuptools import find_packages, setup

# READMEファイルを読み込み


def read_readme():
    with open('README.md', 'r', encoding='utf-8') as f:
        return f.read()

# requirements.txtを読み込み


def read_requirements():
    with open('requirements.txt', 'r', encoding='utf-8') as f:
        return [line.strip() for line in f.readlines()
                if line.strip() and not line.startswith('#')]


setup(
    name='cnnbatch',
    version='0.1.0',
    author='Pochi Team',
    author_email='pochi@example.com',
    description='Batched inference adapter and demos for ONNX Runtime / OpenVINO',
    long_description=read_readme(),
    long_description_content_type='text/markdown',
    packages=find_packages(include=['cnnbatch', 'cnnbatch.*']),
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Artificial Intelligence',
        'Topic :: Software Development :: Libraries :: Python Modules',
    ],
    keywords='deep learning, inference, onnxruntime, openvino, mask rcnn, head pose',
    python_requires='>=3.10',
    install_requires=read_requirements(),
    extras_require={
        'openvino': [
            'openvino>=2023.1',
        ],
        'test': [
            'pytest>=6.0.0',
            'onnx>=1.14.0',
        ],
        'dev': [
            'pytest>=6.0.0',
            'onnx>=1.14.0',
            'flake8>=3.8.0',
            'black>=21.0.0',
            'isort>=5.8.0',
            'pydocstyle>=6.0.0',
            'pre-commit>=2.12.0'
        ]
    },
    entry_points={
        'console_scripts': [
            'cnnbatch=cnnbatch.cli.main:main',
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
