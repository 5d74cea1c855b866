"""
Gilfinder Backend - 경로 주변 장소 검색 및 주유소/충전소 캐시 서버
"""

from setuptools import setup, find_namespace_packages

setup(
    name='gilfinder-backend',
    version='1.2.0',
    author='Gilfinder Team',
    description='Route-proximity place discovery with geo-indexed fuel price / EV charger caches',
    long_description='''
    Samples a driving route to recommend places (fuel, EV chargers, rest areas,
    cafes, restaurants) evenly along the whole route within a detour budget, and
    matches them against tiered (memory / Redis / snapshot file) caches of
    OPINET fuel prices and Korea Environment Corporation EV charger data.
    ''',
    # app/, app/api 등은 __init__.py 없는 namespace package
    packages=find_namespace_packages(include=['app', 'app.*']),
    install_requires=[
        'fastapi>=0.100.0',
        'uvicorn[standard]>=0.23.0',
        'pydantic>=2.0',
        'python-dotenv>=1.0.0',
        'redis>=5.0.1',
        'celery>=5.3.0',
        'httpx>=0.25.0',
        'numpy>=1.24.0',
        'pyproj>=3.6.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.21.0',
            'pytest-mock>=3.11.0',
        ],
    },
    zip_safe=False,
    python_requires='>=3.9',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Topic :: Scientific/Engineering :: GIS',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ],
)
