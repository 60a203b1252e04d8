from setuptools import setup

setup(
    name='snprel',
    version='1.0',
    packages=['snprel',],
    license='GNU General Public License v3.0',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    description="The snprel package filters putative parent-offspring pairs from SNP genotype data using counts of pedigree inconsistent loci, and runs the relatedness estimator EMIBD9 on SNP genotypes.",
    python_requires='>=3.8',
    install_requires=['pandas>=1.3','scipy>=1.7','natsort>=7.0','numpy>=1.21','matplotlib>=3.5','seaborn>=0.11'],
    extras_require={'test': ['pytest']},
)
