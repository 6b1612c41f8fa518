"""Install the user profile service."""

from setuptools import setup, find_packages

setup(
    name='user-profile-service',
    version='0.3.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=[
        "flask>=3.0",
        "flask-sqlalchemy>=3.0",
        "sqlalchemy>=1.4",
        "werkzeug",
        "wtforms",
        "python-dateutil",
        "pytz",
        "pyjwt",
        "redis",
        "fakeredis",
        "python-json-logger>=3.1",
        "click"
    ],
    extras_require={
        'test': ["pytest"]
    },
    entry_points={
        'console_scripts': [
            'create-profile-user=userprofile.create_user:create_user'
        ]
    },
    zip_safe=False
)
