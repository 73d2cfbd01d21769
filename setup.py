from setuptools import setup, find_packages


install_requires = [
    'botocore>=1.31.17',
    'aiobotocore>=2.5',
    'blinker>=1.3,<2.0',
]

setup(
    name='pydyno',
    version='0.1.0',
    packages=find_packages(exclude=('tests',)),
    description='An asyncio interface to DynamoDB: batch splitting, item streams and table lifecycle helpers',
    long_description=open('README.rst').read(),
    long_description_content_type='text/x-rst',
    zip_safe=False,
    license='MIT',
    keywords='python dynamodb amazon asyncio',
    python_requires=">=3.8",
    install_requires=install_requires,
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Programming Language :: Python',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'License :: OSI Approved :: MIT License',
        'Framework :: AsyncIO',
    ],
    extras_require={
        'test': ['pytest>=6', 'pytest-asyncio>=0.21'],
    },
    package_data={'pydyno': ['py.typed']},
)
