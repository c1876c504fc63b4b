"""
Setup script for opcode_gas_stats.
"""
import pathlib

from setuptools import find_packages, setup


def read_requirements(name):
    lines = pathlib.Path(name).read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.startswith("#")]


install_requires = read_requirements("requirements.txt")
tests_require = read_requirements("dev-requirements.txt")

setup(
    name="opcode_gas_stats",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={
        "": "src",
    },
    include_package_data=True,
    zip_safe=False,
    install_requires=install_requires,
    extras_require={
        "test": tests_require,
    },
    entry_points={
        "console_scripts": [
            "opcode-gas-stats=opcode_gas_stats.main:main",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
