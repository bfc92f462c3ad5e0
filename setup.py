import setuptools
from setuptools import find_packages

with open("readme.md", "r") as fh:
    long_description = fh.read()


vars2find = ["__author__", "__version__"]
vars2readme = {}
with open("./compose_snapshot/__init__.py") as f:
    for line in f.readlines():
        for v in vars2find:
            if line.startswith(v):
                line = line.replace(" ", "").replace('"', "").replace("'", "").strip()
                vars2readme[v] = line.split("=")[1]

core_deps = [
    "pydantic>=2.0",
    "PyYAML>=6.0",
    "tenacity",
]

setuptools.setup(
    name="compose-snapshot",
    version=vars2readme["__version__"],
    author=vars2readme["__author__"],
    description="Back up and restore docker compose deployments as portable archives",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["compose_snapshot", "compose_snapshot.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
    ],
    python_requires=">=3.9",
    install_requires=core_deps,
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "compose-snapshot=compose_snapshot.cli:main",
        ],
    },
)
