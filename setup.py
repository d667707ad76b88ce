from setuptools import find_packages, setup

setup(
    name="optimo",
    version="0.0",
    description="Composable reformulations of constrained optimization problems in Jax",
    license="BSD",
    packages=find_packages("src"),
    package_dir={"": "src"},
    package_data={"optimo": ["py.typed"]},
    python_requires=">=3.10",
    install_requires=[
        "jax>=0.4.20,<0.9",
        "jaxlib<0.9",
        "jax_dataclasses>=1.6.0",
        "loguru",
        "numpy",
        "typing_extensions>=4.4.0",
    ],
    extras_require={
        "testing": [
            "pytest",
            "pytest-cov",
        ],
        "type-checking": [
            "mypy",
        ],
    },
)
