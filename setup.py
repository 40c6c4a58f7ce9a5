from setuptools import find_packages, setup

setup(
    name='pygridmath',
    packages=find_packages(),
    install_requires=[
        'numpy',
        'scipy>=1.9',
        'cached-property',
    ],
    extras_require={
        'test': ['pytest'],
    },
    license='LGPL',
    platforms='any',
    zip_safe=False,
)
