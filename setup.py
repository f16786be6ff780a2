import setuptools

def get_version():
    with open("tarblock/__init__.py") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=")[1].strip().strip('"')

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    name="tarblock",
    version=get_version(),
    description="A USTAR tar archive engine: block-exact encoding, navigation and extraction.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: System :: Archiving",
        "Intended Audience :: Developers",
    ],
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10.0",
    install_requires=[
        "peewee>=3.17",
        "pydantic>=2.0",
    ],
    extras_require={
        "test": ["pytest"],
    },
    keywords="tar, ustar, archive, extraction, checksum",
)
