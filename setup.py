from setuptools import setup, find_packages
from votewatch._version import __version__

setup(
    name="votewatch",
    version=__version__,
    description="A read-only, cached view of one governance proposal's on-chain votes, and the delegates who haven't voted.",
    author="Vote Watch",
    license="MIT license",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"votewatch": ["abis/*.json"]},
    install_requires=[
        "web3>=7",
        "eth-abi>=5",
        "eth-utils>=4",
        "abifsm",
        "sanic>=23.3",
        "sanic-ext",
        "python-dotenv",
        "PyYAML",
        "argh",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "sanic-testing",
        ],
    },
    entry_points={
        "console_scripts": [
            "votewatch=votewatch.cli:main",
        ],
    },
)
