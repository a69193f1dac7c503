from pathlib import Path

from setuptools import find_packages, setup

from app.__version__ import __version_string__

ROOT_DIR = Path(__file__).parent.resolve() / "app"

setup(
    name="chip8vm",
    version=__version_string__,
    description="Interpreter core for the 35-opcode CHIP-8 virtual machine",
    packages=[f"chip8vm.{p}" for p in find_packages(str(ROOT_DIR / "chip8vm"))] + ["chip8vm"],
    package_dir={"chip8vm": "app/chip8vm"},
    python_requires=">=3.11",
    install_requires=[
        "numpy",
        "bitarray",
        "rich",
        "returns",
    ],
    extras_require={
        "frontend": ["pygame"],
        "test": ["pytest"],
    },
    include_package_data=True,
    zip_safe=False,
)
