from setuptools import setup, find_packages

setup(
    name="archive_client",
    version="0.1.0",
    packages=find_packages(),
    install_requires=["httpx>=0.26.0"],
    entry_points={
        "console_scripts": [
            "archive-client=archive_client.cli:main",
        ],
    },
)
