#!/usr/bin/env python
if __name__ == '__main__':
    from setuptools import setup
    from pathlib import Path
    import subprocess as sp
    import sys
    import re

    # This package may not be distributed with `make_version.py`. In that
    # case, the version file should already exist.
    if Path('make_version.py').exists():
        sp.call([sys.executable, 'make_version.py'])

    version_file = Path('mvgp/_version.py')
    version_text = version_file.read_text()
    version_info = dict(
        re.findall(r'(__[A-Za-z_]+__)\s*=\s*"([^"]+)"', version_text)
        )

    setup(
        name='mvgp',
        version=version_info.get('__version__', '0+unknown'),
        description='Bayesian multivariate predictive-process Gaussian '
                    'process regression with missing covariates',
        packages=['mvgp'],
        include_package_data=True,
        license='MIT',
        python_requires='>=3.7',
        install_requires=[
            'numpy>=1.17',
            'scipy',
            'sympy'
            ],
        extras_require={'test': ['pytest']}
        )
