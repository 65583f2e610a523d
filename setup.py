"""Setup script for panewatch package."""

from setuptools import find_packages, setup

setup(
    name="panewatch",
    version="0.1.0",
    description="Run shell commands on an interval in splittable terminal panes",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"panewatch": ["styles/*.tcss"]},
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
        "textual>=0.86",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "panewatch=panewatch.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
