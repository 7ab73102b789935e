from setuptools import setup, find_packages

setup(
    name='affect',
    version='1.0.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,
    python_requires='>=3.12',
    install_requires=[
        'colored>=2.2.3',
        'halo>=0.0.31',
        'httpx>=0.27',
        'numpy>=1.26.2',
        'python-dotenv>=1.0',
    ],
    extras_require={
        'test': ['pytest>=8.0'],
    },
    entry_points='''
        [console_scripts]
        affect=affect.__main__:main
    ''',
    license='MIT',
    keywords='interview emotion affect inference',
    description='Interview affect acquisition and aggregation pipeline',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
)
