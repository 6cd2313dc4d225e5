"""
Setup configuration for RECheck
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Read requirements
with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="recheck",
    version="1.0.0",
    author="RECheck Team",
    author_email="team@recheck.local",
    description="Research ethics committee workflow: deviation reports, forms, reviews and announcements",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="backend", exclude=["tests", "tests.*"]),
    package_dir={"": "backend"},
    include_package_data=True,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: Other/Proprietary License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Framework :: Django :: 5.0",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-django>=4.7.0",
            "black>=23.12.1",
            "flake8>=7.0.0",
        ],
    },
)
