from setuptools import setup


setup(
    name="statement-review",
    version="0.3.0",
    description="Normalize human-entered statement review workbooks into MP and KYM record sets",
    packages=["statement_review"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "openpyxl",
        "streamlit",
        "requests",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "statement-review=statement_review.cli:main",
        ]
    },
)
