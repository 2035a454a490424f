import setuptools

setuptools.setup(
    name="card_binder_tools",
    version="0.1",
    description="Card binder layout: page geometry, card placement and missing-card tracking",
    packages=["repositories", "services", "utils"],
    classifiers=["Programming Language :: Python :: 3"],
    python_requires=">=3.11",
    install_requires=[
        "loguru",
        "pymongo",  # Binder document storage
    ],
    extras_require={"test": ["pytest"]},
)
