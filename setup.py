from setuptools import setup, find_packages

'''
Notes: This is the setup file for the Portflow project.
It defines the package metadata and dependencies required for installation.
'''

setup(
    name = "portflow",
    version = "1.2.0",
    description= "Portflow - Listening ports, port forwards and container inventory for Linux hosts",
    packages=find_packages(include=["portflow", "portflow.*"]),
    python_requires='>=3.10',
    install_requires=[
        # Core
        "fastapi",
        "uvicorn[standard]",
        "pydantic>=2",
        "PyYAML",
        "python-dotenv",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
)
