from setuptools import setup, find_packages

setup(
    name="llm-request-core",
    version="0.1.0",
    description="Caching, rate limiting, retries and batching for text-generation API calls",
    author="Korah Stone",
    author_email="korahcomm@gmail.com",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "httpx>=0.25.0",
        "pydantic>=2.0.0",
        "tenacity>=8.2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
        ]
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
