"""setuptools setup for StudyPulse.

Install for development:
    pip install -e ".[test]"
    studypulse run --minutes 25 --subject Math
"""

from setuptools import setup, find_packages

setup(
    name="StudyPulse",
    version="0.1.0",
    description="Study timer with a drift-corrected countdown engine",
    packages=find_packages(include=["studypulse", "studypulse.*"]),
    python_requires=">=3.10",
    install_requires=[
        "PyQt6",
        "SQLAlchemy>=2.0",
        "numpy",
        "click",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "studypulse=studypulse.__main__:main",
        ],
    },
)
