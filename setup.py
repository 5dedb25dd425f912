from __future__ import annotations

from pathlib import Path

from setuptools import find_packages, setup


ROOT = Path(__file__).resolve().parent


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


VERSION = read_text(ROOT / "VERSION").strip()
README = read_text(ROOT / "README.md")


setup(
    name="boincrpc",
    version=VERSION,
    description="Asyncio client for the BOINC GUI RPC protocol.",
    long_description=README,
    long_description_content_type="text/markdown",
    author="boincrpc contributors",
    python_requires=">=3.8",
    packages=find_packages(include=["boincrpc", "boincrpc.*"]),
    include_package_data=True,
    install_requires=[],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "boinc-rpc=boincrpc.cli:main",
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3 :: Only",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Framework :: AsyncIO",
    ],
    keywords=["boinc", "rpc", "gui_rpc", "client", "asyncio"],
)
