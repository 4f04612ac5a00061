"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/ffbind/ffbind"
KEYWORDS = "ffmpeg build cross-compile pkg-config bindings cffi rockchip mpp"
HERE = os.path.dirname(os.path.abspath(__file__))


def read_version() -> str:
    with open(os.path.join(HERE, "src", "ffbind", "__init__.py"), encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=")[1].strip().strip('"')
    raise RuntimeError("Unable to find __version__")


if __name__ == "__main__":
    setup(
        name="ffbind",
        version=read_version(),
        description="Builds FFmpeg from vendored sources and generates a cffi binding for it",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.8",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        install_requires=[
            "cffi>=1.15",
            "pycparser>=2.21",
            "psutil>=5.9",
        ],
        extras_require={
            "test": [
                "pytest>=7.0",
            ],
        },
        entry_points={
            "console_scripts": [
                "ffbind=ffbind.cli:main",
            ],
        },
        include_package_data=True)
