from setuptools import setup, find_packages
from pathlib import Path

# Read README.md if available (for development installs)
# For wheel builds, use a fallback description
readme_path = Path(__file__).parent / "README.md"
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")
else:
    long_description = "Firestore-backed remote document and collection services for data-synchronization engines."

setup(
    name="firestore-datasync",
    version="0.3.1",
    author="Fabricio Ceolin",
    author_email="fabceolin@gmail.com",
    description="Firestore-backed remote document and collection services for data-synchronization engines",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=[
        "firebase-admin>=6.2.0",  # brings google-cloud-firestore (FieldFilter, on_snapshot)
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
        "typer>=0.9.0",
    ],
    entry_points={
        "console_scripts": [
            "fsds=firestore_datasync.cli:main",
        ],
    },
    extras_require={
        "dev": [
            "pytest",
            "coverage",
        ],
    },
)
