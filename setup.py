"""Setup script for modeler: explicit package discovery with setuptools."""
from setuptools import setup, find_packages

setup(
    name="modeler",
    version="0.1.0",
    description="Reactive dataflow graphs: observable nodes, push and pull evaluation",
    python_requires=">=3.9",
    packages=find_packages(where=".", include=("modeler", "modeler.*")),
    package_dir={"": "."},
    install_requires=[
        "omegaconf>=2.3",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": ["modeler=modeler.cli:main"],
    },
)
