#!/usr/bin/env python3
"""
Setup script for Zen Fortune Cookie
"""

from pathlib import Path

from setuptools import find_packages, setup

HERE = Path(__file__).parent


def read_requirements():
    """Read runtime requirements from requirements.txt"""
    with open(HERE / "requirements.txt", "r") as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]


setup(
    name="zen-fortune-cookie",
    version="0.1.0",
    description="Crack on-chain fortune cookies by command or two-hand gesture",
    packages=find_packages(include=["fortune_cookie", "fortune_cookie.*"]),
    package_data={"fortune_cookie": ["config.default.yaml", "fortunes.json"]},
    python_requires=">=3.9",
    install_requires=read_requirements(),
    extras_require={"test": ["pytest>=7.0"]},
    entry_points={
        "console_scripts": [
            "fortune-cookie=fortune_cookie.main:run_cli",
        ],
    },
)
