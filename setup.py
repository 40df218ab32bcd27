"""
Setup script for bayes-ts package
"""

from setuptools import setup, find_packages

setup(
    name='bayes-ts',
    version='0.1.0',
    description='Bayesian time-series case studies: simulate, fit and diagnose '
                'regression, VAR and ODE growth models',

    # Package discovery from src/
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    python_requires='>=3.8',

    install_requires=[
        'numpy>=1.21.0',
        'scipy>=1.7.0',
        'pandas>=1.3.0',
        'tqdm>=4.62.0',
        'arviz>=0.12.0,<1.0',
    ],

    extras_require={
        'bayesian': [
            'pymc>=5.10.0',  # Modern PyMC (v5+)
            'pytensor>=2.18.0',  # Modern backend
        ],
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=3.0.0',
            'black>=22.0.0',
            'flake8>=4.0.0',
        ],
        'all': [
            'pymc>=5.10.0',
            'pytensor>=2.18.0',
            'pytest>=7.0.0',
            'pytest-cov>=3.0.0',
            'black>=22.0.0',
            'flake8>=4.0.0',
        ],
    },

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Topic :: Scientific/Engineering :: Mathematics',
    ],

    keywords='bayesian-inference time-series vector-autoregression mcmc pymc',
)
