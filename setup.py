from setuptools import setup, find_packages

setup(
    name="apptracker",
    version="0.1.0",
    python_requires=">=3.10",
    packages=find_packages(include=["apptracker", "apptracker.*"]),
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy",
        "psycopg2-binary",
        "httpx",
        "python-dotenv",
        "pydantic",
        "pydantic-settings",
        "prometheus-client",
        "prometheus-fastapi-instrumentator",
        "tzdata",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
)
