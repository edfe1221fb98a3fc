"""
Setup file.
"""

import os

from setuptools import find_packages, setup

NAME = "lfbuild"
URL = "https://github.com/lfbuild/lfbuild"
KEYWORDS = "javascript closure compiler codegen build orchestration bundle"
HERE = os.path.dirname(os.path.abspath(__file__))


def get_version() -> str:
    """Read __version__ from the package without importing it."""
    init_py = os.path.join(HERE, "src", NAME, "__init__.py")
    with open(init_py, encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=", 1)[1].strip().strip("\"'")
    raise RuntimeError(f"Unable to find __version__ in {init_py}")


if __name__ == "__main__":
    setup(
        name=NAME,
        version=get_version(),
        description="Build orchestration for Closure-compiled JavaScript bundles",
        keywords=KEYWORDS,
        url=URL,
        package_dir={"": "src"},
        packages=find_packages("src"),
        python_requires=">=3.9",
        install_requires=[
            "psutil",
            "tqdm",
        ],
        extras_require={
            "test": [
                "pytest",
            ],
        },
        entry_points={
            "console_scripts": [
                "lfbuild=lfbuild.cli:main",
            ],
        },
        include_package_data=True)
