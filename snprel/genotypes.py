import numpy as np
import pandas as pd
from snprel.misc import Logger


class GenotypeMatrix(object):
    '''SNP genotypes for a set of individuals: one row per individual, one column per locus, values are the dosage (0, 1 or 2) of one allele
    or NaN for a missing call. Optional locus metrics (e.g. reproducibility "RepAvg", read depth "rdepth") are held in a DataFrame indexed by locus.

    Every subsetting method returns a new GenotypeMatrix and leaves the original unchanged.'''

    def __init__(self, geno_df, loc_metrics_df=None, logger=None):

        self.logger = logger if logger is not None else Logger()
        try:
            geno_df = geno_df.apply(pd.to_numeric).astype(float)
        except (ValueError, TypeError) as e:
            raise ValueError("Genotypes must be 0, 1, 2 or missing: {0}".format(e))
        geno_df.index = geno_df.index.astype(str)
        geno_df.columns = geno_df.columns.astype(str)
        if geno_df.index.has_duplicates:
            duplicate_l = pd.unique(geno_df.index[geno_df.index.duplicated()]).tolist()
            raise ValueError("Individual IDs must be unique, duplicated: {0}".format(",".join(duplicate_l)))
        values = geno_df.values
        invalid_b = ~np.isnan(values) & ~np.isin(values, [0.0, 1.0, 2.0])
        if invalid_b.any():
            raise ValueError("Genotypes must be 0, 1, 2 or missing, found: {0}".format(",".join(str(v) for v in np.unique(values[invalid_b]))))
        if loc_metrics_df is not None:
            loc_metrics_df = loc_metrics_df.copy()
            loc_metrics_df.index = loc_metrics_df.index.astype(str)
            if loc_metrics_df.index.tolist() != geno_df.columns.tolist():
                raise ValueError("Locus metrics must be indexed by the loci of the genotype matrix, in the same order.")
        self.geno_df = geno_df
        self.loc_metrics_df = loc_metrics_df


    @classmethod
    def from_csv(cls, genotypes_path, loc_metrics_path=None, sep=",", logger=None):
        '''Read genotypes (individuals as rows, first column the individual IDs) and optionally locus metrics (first column the locus names).

        Args:
            | genotypes_path (str): path to the genotypes file.
            | loc_metrics_path (str): path to the locus metrics file.
            | sep (str): field separator of both files.

        Returns:
            GenotypeMatrix
        '''

        #Empty cells, NA and NaN are read as missing calls. Any other non-numeric token is rejected by the constructor.
        geno_df = pd.read_csv(genotypes_path, sep=sep, index_col=0, dtype=str)
        loc_metrics_df = None
        if loc_metrics_path is not None:
            loc_metrics_df = pd.read_csv(loc_metrics_path, sep=sep, index_col=0)
        return cls(geno_df, loc_metrics_df=loc_metrics_df, logger=logger)


    @property
    def ind_names(self):
        return self.geno_df.index.tolist()


    @property
    def loc_names(self):
        return self.geno_df.columns.tolist()


    @property
    def n_ind(self):
        return self.geno_df.shape[0]


    @property
    def n_loc(self):
        return self.geno_df.shape[1]


    @property
    def values(self):
        '''Float array of dosages (individuals x loci) with NaN for missing calls.'''
        return self.geno_df.values


    def has_loc_metric(self, name):
        return self.loc_metrics_df is not None and name in self.loc_metrics_df.columns


    def missing_counts(self):
        '''Get the number of missing calls for each individual.

        Returns:
            missing_s (Series): index is the individual ID and values are the # of missing calls.
        '''

        missing_s = self.geno_df.isnull().sum(axis=1)
        missing_s.name = "NAs"
        return missing_s


    def drop_individuals(self, ind_l):
        '''Remove individuals.

        Args:
            ind_l (list of strs): IDs of the individuals to remove.

        Returns:
            GenotypeMatrix without the listed individuals.
        '''

        ind_l = [str(ind) for ind in ind_l]
        absent_l = [ind for ind in ind_l if ind not in self.geno_df.index]
        if absent_l:
            self.logger.warn("{0} individuals to drop are not present: {1}".format(len(absent_l), ",".join(absent_l)))
        geno_df = self.geno_df.loc[~self.geno_df.index.isin(ind_l), :]
        self.logger.log("Dropped {0} individuals, {1} remain.".format(self.n_ind - geno_df.shape[0], geno_df.shape[0]), level=3)
        return GenotypeMatrix(geno_df, loc_metrics_df=self.loc_metrics_df, logger=self.logger)


    def keep_loci(self, keep):
        '''Subset the loci.

        Args:
            keep (boolean array-like or list of strs): mask over the loci, or names of the loci to keep.

        Returns:
            GenotypeMatrix with only the kept loci (and their metrics).
        '''

        keep_arr = np.asarray(keep)
        if keep_arr.dtype != bool:
            keep_arr = self.geno_df.columns.isin([str(loc) for loc in keep])
        geno_df = self.geno_df.loc[:, keep_arr]
        loc_metrics_df = None if self.loc_metrics_df is None else self.loc_metrics_df.loc[keep_arr, :]
        return GenotypeMatrix(geno_df, loc_metrics_df=loc_metrics_df, logger=self.logger)


    def filter_reproducibility(self, threshold=0.99):
        '''Keep loci whose reproducibility (RepAvg) is >= threshold.'''

        if not self.has_loc_metric("RepAvg"):
            raise KeyError("RepAvg is not among the locus metrics.")
        keep_s = self.loc_metrics_df["RepAvg"] >= threshold
        self.logger.log("Reproducibility filter (>= {0}) removed {1} of {2} loci.".format(threshold, (~keep_s).sum(), self.n_loc), level=3)
        return self.keep_loci(keep_s.values)


    def filter_rdepth(self, lower=5, upper=1000):
        '''Keep loci whose read depth (rdepth) lies in [lower, upper].'''

        if not self.has_loc_metric("rdepth"):
            raise KeyError("rdepth is not among the locus metrics.")
        rdepth_s = self.loc_metrics_df["rdepth"]
        keep_s = (rdepth_s >= lower) & (rdepth_s <= upper)
        self.logger.log("Read depth filter ({0}-{1}) removed {2} of {3} loci.".format(lower, upper, (~keep_s).sum(), self.n_loc), level=3)
        return self.keep_loci(keep_s.values)


    def filter_monomorphs(self):
        '''Remove loci that are monomorphic (allele frequency 0 or 1 among the non-missing calls) or have no calls at all.
        A locus where every call is heterozygous carries both alleles and is kept.'''

        frq_s = self.geno_df.mean(axis=0, skipna=True) / 2
        polymorphic_b = ((frq_s > 0) & (frq_s < 1)).values
        self.logger.log("Removed {0} monomorphic loci.".format((~polymorphic_b).sum()), level=3)
        return self.keep_loci(polymorphic_b)
