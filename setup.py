from setuptools import find_packages, setup

setup(
    name='indexscm',
    version='0.1.0',
    description='Treat HTTP directory listings as a revision history',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.9',
    install_requires=[
        'requests',
        'urllib3',
        'beautifulsoup4',
        'PyYAML',
        'platformdirs',
        'rich',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-mock',
        ],
    },
    entry_points={
        'console_scripts': [
            'indexscm=indexscm.cli:main',
        ],
    },
)
