from setuptools import setup, find_packages

setup(
    name="lifeline",
    version="0.1.0",
    description="Resilient SSH command execution and file transfer for flaky remote hosts",
    author="",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.8",
    install_requires=[
        "paramiko>=3.4.0",
        "scp>=0.14.5",
        "pyyaml>=6.0.1",
        "click>=8.1.7",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "lifeline=lifeline.cli:main",
        ],
    },
    include_package_data=True,
)
