from setuptools import setup, find_packages


setup(
    name="treetar",
    version="0.1",
    packages=find_packages(include=["treetar", "treetar.*"]),
    description="Stream directory trees into tar archives with an inline content digest, and extract them back.",
    python_requires=">=3.10",
    install_requires=[],
    entry_points={
        "console_scripts": [
            "treetar=treetar.cli:main",
        ]
    },
)
