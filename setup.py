import setuptools
from pathlib import Path

# Read the long description from README.md
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

setuptools.setup(
    name="sigstruct",
    version="0.1.0",
    author="sigstruct contributors",
    description="Typed values from free-form LLM output: schema compilation, strategy selection, tolerant decoding and coercion with fallback.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    package_dir={"": "src"},
    packages=setuptools.find_packages(where="src"),
    python_requires=">=3.10,<4.0",
    install_requires=[
        "pydantic>=2.0",
        "httpx>=0.24",
        "python-dotenv>=1.0",
        "json-repair>=0.25",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    include_package_data=True,
)
