from setuptools import setup, find_packages

setup(
    name="stream-diff",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        "textual",
        "tqdm>=4.60",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "streamdiff=stream_diff.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Incremental diff application with per-block accept/reject review.",
)
