# -*- coding: utf-8 -*-
"""vault-lease-manager a module for obtaining dynamic vault credentials and keeping their leases alive.

Credentials are renewed in the background before they expire, replaced when their lease reaches
its maximum lifetime and the owner is told through an observer when the lease is gone.

"""

import setuptools
import re
from io import open

VERSIONFILE="vault_lease_manager/_version.py"
verstrline = open(VERSIONFILE, "rt").read()
VSRE = r"^__version__ = ['\"]([^'\"]*)['\"]"
mo = re.search(VSRE, verstrline, re.M)
if mo:
    verstr = mo.group(1)
else:
    raise RuntimeError("Unable to find version string in %s." % (VERSIONFILE,))

with open("README.md", "r", encoding='utf-8') as fh:
    long_description = fh.read()

setuptools.setup(
    name='vault_lease_manager',
    version=verstr,
    author="Mike Moore",
    author_email="z_z_zebra@yahoo.com",
    description="Obtain dynamic hashicorp vault credentials and autorenew or replace their leases in the background",
    long_description_content_type="text/markdown",
    long_description=long_description,
    packages=setuptools.find_packages(),
    include_package_data=True,
    license="MIT",
    scripts=[],
    install_requires=[
        "requests~=2.0",
        "python-dateutil~=2.0"
    ],
    extras_require={
        "test": ["pytest"]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],

)
