from setuptools import find_packages, setup

setup(
    name="gitmeta",
    version="0.2.0",
    packages=find_packages(include=["gitmeta", "gitmeta.*"]),
    entry_points={
        "console_scripts": [
            "git-meta=gitmeta.cli:main",
        ],
    },
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.10",
    description="gitmeta — track file permissions, owner and group in git",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Topic :: Software Development :: Version Control",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3.12",
    ],
)
