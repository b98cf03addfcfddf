#!/usr/bin/python3

from setuptools import setup


with open("README.md", "r") as f:
    long_description = f.read()


setup(name='spacealloc',
      version='0.1.0',
      description='Python module for planning partition space on system storage',
      long_description=long_description,
      long_description_content_type="text/markdown",
      packages=['spacealloc'],
      install_requires=['bytesize', 'pyudev'],
      extras_require={'test': ['pytest']},
      python_requires='>=3.6',
      classifiers=["Development Status :: 3 - Alpha",
                   "Intended Audience :: Developers",
                   "License :: OSI Approved :: GNU General Public License v2 or later (GPLv2+)",
                   "Programming Language :: Python :: 3",
                   "Operating System :: POSIX :: Linux"]
     )
