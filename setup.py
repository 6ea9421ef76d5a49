#!/usr/bin/env python

from setuptools import setup, find_packages
import eulactive

LONG_DESCRIPTION = None
try:
    # read the description if it's there
    with open('README.rst') as desc_f:
        LONG_DESCRIPTION = desc_f.read()
except IOError:
    pass

CLASSIFIERS = [
    'Development Status :: 3 - Alpha',
    'Framework :: Django',
    'Intended Audience :: Developers',
    'License :: OSI Approved :: Apache Software License',
    'Natural Language :: English',
    'Operating System :: OS Independent',
    'Programming Language :: Python',
    'Programming Language :: Python :: 3',
    'Topic :: Software Development :: Libraries :: Python Modules',
]

requirements = [
    'eulxml>=1.0.1',
    'lxml',
    'rdflib>=3.0',
    'python-dateutil',
    'requests>2.9',
    'requests-toolbelt>=0.6.0',
]

test_requirements = [
    'pytest',
    'mock',
]

dev_requirements = test_requirements + [
    'sphinx',
    'coverage',
    'Django',
    'tox',
]


setup(
    name='eulactive',
    version=eulactive.__version__,
    author='Emory University Libraries',
    author_email='libsysdev-l@listserv.cc.emory.edu',
    license='Apache License, Version 2.0',
    packages=find_packages(exclude=['test', 'test.*', 'test_*']),
    install_requires=requirements,
    # django is optional; when installed and configured, Repository
    # connection settings are read from django settings
    extras_require={
        'django': ['Django'],
        'test': test_requirements,
        'dev': dev_requirements,
    },
    description='Active-record style models for digital objects in a Fedora Commons repository, indexed in Solr',
    long_description=LONG_DESCRIPTION,
    classifiers=CLASSIFIERS,
)
