from setuptools import setup, find_packages

setup(
    name="sapicache",
    version="0.1.0",
    description="Sapicache - bounded semantic cache with deduplication, weighted eviction and decay",
    packages=find_packages(include=["Sapicache", "Sapicache.*"]),
    py_modules=["main"],
    python_requires=">=3.10",
    install_requires=[
        # Numerics
        "numpy>=1.24.0",

        # Validation
        "pydantic>=2.0",

        # Network
        "requests>=2.28.0",

        # Web framework
        "flask>=2.0.0",
        "flask-cors>=3.0.0",
        "gunicorn>=20.0.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sapicache=main:main",
        ],
    },
)
