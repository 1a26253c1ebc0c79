from setuptools import setup, find_packages

setup(
    name='bp-seals',
    version='0.8.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=[
        'jcs>=0.2.1',
        'ecdsa>=0.18',
        'bech32>=1.2.0',
    ],
    extras_require={
        'dev': [
            'pytest>=7.0',
            'hypothesis>=6.0',
        ]
    },
    description='Deterministic bitcoin commitments and transaction output single-use seals',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Topic :: Security :: Cryptography',
        'Programming Language :: Python :: 3.8',
    ],
    python_requires='>=3.8',
)
