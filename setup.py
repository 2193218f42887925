from setuptools import setup, find_packages


setup(
    name="cpack",
    version="0.1",
    packages=find_packages(include=["cpack", "cpack.*"]),
    description="Reader for cpack archives, with thread-safe seekable views over each packed file.",
    author="vercingetorx",
    python_requires=">=3.8",
    install_requires=[],
    entry_points={
        "console_scripts": [
            "cpack=cpack.cli:main",
        ]
    },
)
