#
# Licensed to the Apache Software Foundation (ASF) under one
# or more contributor license agreements.  See the NOTICE file
# distributed with this work for additional information
# regarding copyright ownership.  The ASF licenses this file
# to you under the Apache License, Version 2.0 (the
# 'License'); you may not use this file except in compliance
# with the License.  You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# 'AS IS' BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.

"""
Setuptools script for StackML package.
"""
import os

import setuptools

EXTRAS_TEST = {
    'pytest',
    'pytest-cov',
}

EXTRAS_DEV = EXTRAS_TEST | {
    'black',
    'flake8-colors',
    'flake8-bugbear',
    'flake8-typing-imports',
    'isort',
    'pip-tools',
    'pre-commit',
    'pycln',
    'pylint',
}

EXTRAS_ALL = EXTRAS_DEV | EXTRAS_TEST

setuptools.setup(
    name='stackml',
    description='Stacked ensemble regression with out-of-fold candidate blending',
    long_description=open('README.md', encoding='utf8').read(),  # pylint: disable=consider-using-with
    long_description_content_type='text/markdown',
    license='Apache License 2.0',
    packages=setuptools.find_packages(include=['stackml*'], where=os.path.dirname(__file__)),
    package_data={'stackml.setup': ['config.toml', 'logging.ini']},
    install_requires=[
        'click',
        'cloudpickle',
        'numpy',
        'pandas',
        'scikit-learn',
        'tomli',
    ],
    extras_require={
        'all': EXTRAS_ALL,
        'dev': EXTRAS_DEV,
        'test': EXTRAS_TEST,
    },
    entry_points={
        'console_scripts': [
            'stackml = stackml.cli:main',
        ]
    },
    python_requires='>=3.9',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Console',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Topic :: Scientific/Engineering :: Artificial Intelligence',
    ],
    zip_safe=False,
)
