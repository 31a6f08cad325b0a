from setuptools import setup, find_packages

setup(
    name='addrmgr',
    packages=find_packages(exclude=['contrib', 'docs', 'tests*']),
    package_data={'addrmgr.tests': ['data/*.sql']},
    version='0.1.0',
    description='Entity properties codec and network allocation engine '
                'for address management systems',
    keywords=['ipam', 'bluecat', 'address management'],
    license='Apache',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Topic :: System :: Networking',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python :: 3',
    ],
    install_requires=['netaddr', 'mysql-connector-python'],
    extras_require={'test': ['pytest']},
    python_requires='>=3.7, <4',
)
