from setuptools import setup, find_packages


def read_requirements(path):
    with open(path) as fp:
        return [
            line.strip() for line in fp.readlines()
            if line.strip() and not line.startswith('#')
        ]


setup(
    name='dsconnector',
    version='1.0',
    description="Google Cloud Datastore connector for ORM frameworks",
    long_description="""""",
    license="Apache License",
    packages=find_packages(exclude=['ez_setup']),
    install_requires=read_requirements('requirements/prod.txt'),
    extras_require={'test': read_requirements('requirements/test.txt')},
    url='',
    include_package_data=True,
    entry_points="""
       [console_scripts]

       do_dump_kind = dsconnector.datastore.do_dump_kind:main
       """,
    classifiers=[],
    )
