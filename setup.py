from setuptools import setup


setup_options = dict(
    name="insgnss",
    version="0.1",
    description="Loosely coupled INS/GNSS integration toolkit",
    license="MIT",
    packages=["insgnss"],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
    ],
    python_requires=">=3.7",
    install_requires=["numpy", "scipy", "pandas", "numba"],
    extras_require={"test": ["pytest"]},
)

setup(**setup_options)
