from setuptools import setup, find_packages

with open("requirements.txt") as f:
    required = f.read().splitlines()

setup(
    name="atrecord",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=required,
    extras_require={"test": ["pytest"]},
    python_requires=">=3.10",
    entry_points={"console_scripts": ["atrecord = atrecord.cli:main"]},
    description="AT Protocol identifiers, rich text facets and post records",
)
