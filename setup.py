from setuptools import setup, find_packages
version = {}
with open("salmwgs/__version__.py") as f:
    exec(f.read(), version)

setup(
    name="salmwgs",
    version=version["__version__"],
    packages=find_packages(exclude=["tests", "tests.*"]),
    description="Salmonella paired-end WGS pipeline driver: trimming, classification, assembly, QC, cgMLST and AMR profiling",
    install_requires=[
        "biopython>=1.85",
        "tabulate>=0.9",
        "colorama>=0.4",
        "textwrap3>=0.9",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "salmwgs=salmwgs.cli:main"
        ]
    },
    python_requires=">=3.7",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
