from setuptools import setup, find_packages

with open('README.md', 'r', encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='pycamrig',
    version='0.1.0',
    author='SperidLabs',
    author_email='contact@speridlabs.com',
    description='Lens distortion, multi-camera rigs and visual frames for visual-inertial pipelines',
    long_description=long_description,
    long_description_content_type='text/markdown',
    url='https://github.com/speridlabs/pycamrig',
    packages=find_packages(exclude=['tests', 'tests.*']),
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
    install_requires=[
        'numpy>=1.20.0',
    ],
    extras_require={
        'dev': [
            'pytest>=6.0',
        ]
    },
)
