from setuptools import find_packages, setup

package_name = 'mail_manager'

setup(
    name=package_name,
    version='0.1.0',
    packages=find_packages(exclude=['test']),
    install_requires=['setuptools'],
    python_requires='>=3.10',
    zip_safe=True,
    description='Allocation and dispatch engine for mail delivery robots',
    extras_require={
        'test': [
            'pytest',
        ],
    },
)
