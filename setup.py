"""
EV Trip Planner
Charge-stop planning for electric vehicle road trips
"""

from setuptools import setup, find_namespace_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name="ev-trip-planner",
    version="1.0.0",
    author="Youssef Rekik",
    description="Charge-stop planning for electric vehicle road trips",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_namespace_packages(include=["src", "src.*", "config", "app", "app.*"]),
    python_requires=">=3.8",
    install_requires=[
        "pandas>=1.5.0",
        "numpy>=1.21.0",
        "streamlit>=1.33.0",
        "pydeck>=0.8.0",
        "geopy>=2.3.0",
        "requests>=2.28.0",
        "python-dotenv>=1.0.0",
        "pydantic>=1.10.0",
        "pyyaml>=6.0",
        "tqdm>=4.65.0",
        "joblib>=1.3.0"
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ev-trip-plan=src.models.route_optimization.plan_trips:cli",
            "ev-trip-planner=app.streamlit_app:launch",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
