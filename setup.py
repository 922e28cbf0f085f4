"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/zeal8bit/zealbuild"
KEYWORDS = "z80 zeal8bit assembler binutils toolchain retro 8-bit build"
HERE = os.path.dirname(os.path.abspath(__file__))

with open(os.path.join(HERE, "src", "zealbuild", "__init__.py"), encoding="utf-8") as f:
    VERSION = next(
        line.split("=")[1].strip().strip('"')
        for line in f
        if line.startswith("__version__")
    )


if __name__ == "__main__":
    setup(
        name="zealbuild",
        version=VERSION,
        description="Include resolution and GNU toolchain pipeline for Zeal 8-bit assembly",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.8",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        package_data={"zealbuild": ["assets/zeal8bit.ld"]},
        include_package_data=True,
        install_requires=["requests"],
        extras_require={"test": ["pytest"]},
        entry_points={"console_scripts": ["zealbuild=zealbuild.cli:main"]},
    )
