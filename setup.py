#!/usr/bin/env python3
"""
Setup script for the Sequential Cartesian IK Planning Package
"""

from setuptools import setup, find_packages

setup(
    name="robot_ik_planning",
    version="2.0.0",
    description="Sequential Cartesian IK planning with tolerance relaxation and random restarts",
    author="Thorn",
    packages=find_packages(include=["kinematics", "kinematics.*", "planning", "planning.*"],
                           exclude=["*.tests", "*.tests.*"]),
    package_data={
        "kinematics": ["config/*.yaml"],
        "planning": ["config/*.yaml"],
    },
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.19.0",
        "scipy>=1.5.0",
        "PyYAML>=5.1",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
