"""
ShopReel — setuptools build script.

Usage:
    # Development (editable install):
    pip install -e .[test]

    # Run:
    shopreel submit https://shop.example/category
"""

from setuptools import setup, find_namespace_packages

APP_NAME = "shopreel"

setup(
    name=APP_NAME,
    version="1.0.0",
    description="Scrape shop products, generate AI product videos and publish them",
    packages=find_namespace_packages(include=["shopreel", "shopreel.*"]),
    install_requires=[
        "requests>=2.28.0",
        "PyJWT>=2.8.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "shopreel=shopreel.cli:main",
        ],
    },
)
