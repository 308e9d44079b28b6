import io
import re

from setuptools import find_packages, setup

__version__ = re.search(
    r'__version__\s*=\s*[\'"]([^\'"]*)[\'"]',
    io.open("src/mesosbridge/version.py", encoding="utf_8_sig").read(),
).group(1)


setup(
    name="mesosbridge",
    version=__version__,
    description="mesosbridge is a Python library for writing Mesos schedulers and executors against a driver which owns the connection and the event thread.",
    long_description="""mesosbridge is a Python library for writing Mesos schedulers and executors against a driver which owns the connection and the event thread.""",
    author="",
    author_email="",
    package_dir={"": "src"},
    packages=find_packages("src"),
    zip_safe=False,
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "randomname",
        "pyzmq",
        "pydantic>=2",
        "typing_extensions",
    ],
    extras_require={
        "tests": ["pytest"],
    },
)
