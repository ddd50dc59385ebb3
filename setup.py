from __future__ import annotations

import os
import re

from setuptools import find_packages
from setuptools import setup

here = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(here, "lib", "mergetable", "__init__.py")) as v_file:
    VERSION = (
        re.compile(r""".*__version__ = ["'](.*?)['"]""", re.S)
        .match(v_file.read())
        .group(1)
    )

with open(os.path.join(here, "README.rst")) as r_file:
    readme = r_file.read()


setup(
    name="mergetable",
    version=VERSION,
    description="Partition tables unioned with the MySQL MERGE engine, "
    "managed through SQLAlchemy",
    long_description=readme,
    long_description_content_type="text/x-rst",
    license="MIT",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Topic :: Database :: Front-Ends",
    ],
    python_requires=">=3.9",
    package_dir={"": "lib"},
    packages=find_packages("lib"),
    include_package_data=True,
    zip_safe=False,
    install_requires=["SQLAlchemy>=2.0"],
    extras_require={
        "mysql": ["pymysql"],
        "test": ["pytest>=7.0"],
    },
)
