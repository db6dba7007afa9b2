#!/usr/bin/env python
from setuptools import setup, find_packages

setup(
    name="hanyoung_vx4",
    version="0.0.1",
    description="Serial client for Hanyoung NUX VX4 temperature controllers",
    packages=find_packages(),
    entry_points={"console_scripts": ["vx4 = hanyoung_vx4.run:main"]},
    # fmt: off
    install_requires=[
        "backoff",
        "pyserial"
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock"
        ]
    },
    # fmt: on
    include_package_data=True,
)
